from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from woofadaar.models.order import OrderStatus


class OrderCreate(BaseModel):
    user_id: UUID
    plan_code: str | None = Field(default=None, max_length=255)
    amount: Decimal = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
