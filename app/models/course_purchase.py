from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from app.constants.purchase_status import PurchaseStatus


class CoursePurchase(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)

    amount: int = Field(nullable=False)  # smallest currency unit
    status: str = Field(default=PurchaseStatus.PENDING.value, index=True)  # pending | completed | failed

    # payment link id, set once the provider accepted the checkout
    payment_id: Optional[str] = Field(default=None, unique=True, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
