# Schedule request/response models

from typing import Optional
from pydantic import BaseModel, Field


class AssignScheduleRequest(BaseModel):
    """Assign one staff member and shift to an order"""
    order_id: int = Field(..., description="Order ID")
    staff_id: int = Field(..., description="Staff member doing the fulfillment")
    shift_label: str = Field(..., min_length=1, max_length=50, description="e.g. Morning, Evening")
    date: str = Field(..., description="Shift date YYYY-MM-DD")


class ScheduleInfo(BaseModel):
    schedule_id: int
    order_id: int
    staff_id: int
    shift_label: str
    date: str
    status: str
    assigned_by: Optional[int] = None
    created_at: Optional[str] = None
