from uuid import UUID

from sqlalchemy.orm import Session

from woofadaar.models.order import PAID_ORDER_STATUSES, Order
from woofadaar.schemas.order import OrderCreate


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, data: OrderCreate) -> Order:
        order = Order(**data.model_dump(exclude={"status"}), status=data.status.value)
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def has_paid_order(self, user_id: UUID) -> bool:
        """Whether the user has any completed (or since refunded) order."""
        return (
            self.db.query(Order.id)
            .filter(Order.user_id == user_id, Order.status.in_(PAID_ORDER_STATUSES))
            .first()
            is not None
        )
