from uuid import UUID

from sqlalchemy.orm import Session

from woofadaar.models.subscription import PAID_SUBSCRIPTION_STATUSES, Subscription
from woofadaar.schemas.subscription import SubscriptionCreate


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, data: SubscriptionCreate) -> Subscription:
        subscription = Subscription(
            user_id=data.user_id,
            plan_code=data.plan_code,
            status=data.status.value,
            trial_ends_at=data.trial_ends_at,
        )
        self.db.add(subscription)
        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def has_paid_subscription(self, user_id: UUID) -> bool:
        """Whether the user holds or has held a trialing or paid subscription."""
        return (
            self.db.query(Subscription.id)
            .filter(
                Subscription.user_id == user_id,
                Subscription.status.in_(PAID_SUBSCRIPTION_STATUSES),
            )
            .first()
            is not None
        )
