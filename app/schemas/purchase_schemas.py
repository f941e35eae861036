# app/schemas/purchase_schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class CheckoutRequest(BaseModel):
    course_id: int


class CheckoutResponse(BaseModel):
    success: bool = True
    url: str
    cancel_url: str
    purchase_id: int


class PaymentConfirmationResponse(BaseModel):
    success: bool = True
    status: str          # processed | already_processed
    purchase_id: int
    message: str


class PurchaseEventRead(BaseModel):
    event_type: str
    label: str
    created_by: str
    created_at: datetime
    meta: Optional[Dict[str, Any]] = None


class PurchasedCoursesResponse(BaseModel):
    success: bool = True
    purchased_courses: List[Dict[str, Any]]
