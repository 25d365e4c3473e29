# Orders module: checkout, lifecycle transitions and payment recording

from .routes import router as orders_router
from .models import CreateOrderRequest, UpdateStatusRequest, RecordPaymentRequest

__all__ = [
    "orders_router",
    "CreateOrderRequest",
    "UpdateStatusRequest",
    "RecordPaymentRequest"
]
