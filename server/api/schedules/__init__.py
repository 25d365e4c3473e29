# Schedules module: staff assignment for order fulfillment

from .routes import router as schedules_router
from .models import AssignScheduleRequest

__all__ = [
    "schedules_router",
    "AssignScheduleRequest"
]
