# Domain events emitted after an order mutation commits

import logging
from typing import Callable, Optional, Union, Literal
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class StatusChanged(BaseModel):
    """Emitted by the status transition engine"""
    model_config = ConfigDict(frozen=True)

    event_type: Literal["status_changed"] = "status_changed"
    order_id: int
    previous_status: str
    new_status: str


class PaymentRecorded(BaseModel):
    """Emitted by the payment ledger"""
    model_config = ConfigDict(frozen=True)

    event_type: Literal["payment_recorded"] = "payment_recorded"
    order_id: int
    amount_cents: int = Field(..., gt=0)
    new_paid_cents: int = Field(..., ge=0)
    payment_status: str


DomainEvent = Union[StatusChanged, PaymentRecorded]
EventSink = Callable[[DomainEvent], None]


def emit(sink: Optional[EventSink], event: DomainEvent):
    """
    Hand a committed event to the sink

    The mutation has already been committed when this runs, so a failing sink is
    logged and never propagated to the caller.
    """
    if sink is None:
        return
    try:
        sink(event)
    except Exception as e:
        logger.error(f"Event sink failed for {event.event_type} on order {event.order_id}: {str(e)}",
                     exc_info=True)
