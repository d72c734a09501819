from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, func

from woofadaar.core.database import Base
from woofadaar.models.shared import UUIDType, generate_uuid


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# A refunded order was still paid once.
PAID_ORDER_STATUSES = (OrderStatus.COMPLETED.value, OrderStatus.REFUNDED.value)


class Order(Base):
    __tablename__ = "orders"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    plan_code = Column(String(255), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
