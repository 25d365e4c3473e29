# Order, payment and status request/response models

from typing import Optional, List, Literal, Union
from pydantic import BaseModel, Field


class LineItem(BaseModel):
    """Order line item, unit price frozen at checkout"""
    menu_item_id: Union[int, str] = Field(..., description="Menu item reference")
    name: Optional[str] = Field(None, max_length=200)
    quantity: int = Field(..., gt=0)
    unit_price_cents: int = Field(..., ge=0)


class CreateOrderRequest(BaseModel):
    """Checkout request"""
    line_items: List[LineItem] = Field(..., min_length=1)
    order_type: Literal["urgent", "scheduled"]
    delivery_date: Optional[str] = Field(None, description="YYYY-MM-DD, required for scheduled orders")
    delivery_address: Optional[str] = Field(None, max_length=500)


class UpdateStatusRequest(BaseModel):
    """Status change; the label is checked against the closed status table"""
    status: str = Field(..., description="e.g. Accepted, Preparing, Ready, Delivered, cancelled")
    reason: Optional[str] = Field(None, max_length=300, description="Cancellation reason")


class RecordPaymentRequest(BaseModel):
    """Payment collected by staff. Amount range is enforced by the ledger"""
    amount_cents: int = Field(..., description="Amount in cents, must be positive")
    method: Literal["cash", "bank_transfer", "mobile_money", "other"]
    notes: Optional[str] = Field(None, max_length=500)
    external_ref: Optional[str] = Field(None, max_length=100, description="Gateway or bank transaction reference")


class OrderInfo(BaseModel):
    """Order with its derived payment fields"""
    order_id: int
    customer_id: int
    line_items: List[LineItem]
    order_type: str
    status: str
    total_cents: int
    total_etb: float
    paid_cents: int
    paid_etb: float
    payment_status: str
    remaining_cents: int
    remaining_etb: float
    upfront_percent: int
    upfront_required_cents: int
    minimum_upfront_met: bool
    delivery_date: Optional[str] = None
    delivery_address: Optional[str] = None
    schedule_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    cancel_reason: Optional[str] = None


class PaymentInfo(BaseModel):
    payment_id: int
    transaction_no: str
    external_ref: Optional[str] = None
    order_id: int
    amount_cents: int
    amount_etb: float
    method: str
    notes: Optional[str] = None
    paid_after_cents: int
    recorded_by: Optional[int] = None
    created_at: Optional[str] = None
