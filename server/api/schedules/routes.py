# Schedule API routes

import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, Depends, Query, Path, status

from .models import AssignScheduleRequest, ScheduleInfo
from api.auth.dependencies import get_staff_user, get_database
from api.auth.models import TokenData
from db.manager import DatabaseManager
from db.schedule_assigner import ScheduleAssigner
from utils.response import create_success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/schedules", tags=["schedules"])


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def assign_schedule(
    schedule_request: AssignScheduleRequest,
    current_staff: TokenData = Depends(get_staff_user),
    db: DatabaseManager = Depends(get_database)
):
    """
    Assign a staff member to an order; 409 if the order is already scheduled
    """
    schedule = ScheduleAssigner(db).assign(
        order_id=schedule_request.order_id,
        staff_id=schedule_request.staff_id,
        shift_label=schedule_request.shift_label,
        date=schedule_request.date,
        assigned_by=current_staff.user_id
    )

    return create_success_response(
        data=ScheduleInfo(**schedule).model_dump(),
        message=f"Order {schedule['order_id']} scheduled"
    )


@router.get("", response_model=Dict[str, Any])
async def list_schedules(
    staff_id: Optional[int] = Query(None, description="Filter by staff member"),
    date: Optional[str] = Query(None, description="Filter by shift date YYYY-MM-DD"),
    current_staff: TokenData = Depends(get_staff_user),
    db: DatabaseManager = Depends(get_database)
):
    """
    List schedules. Chefs only see their own assignments
    """
    if current_staff.role == 'chef':
        staff_id = current_staff.user_id

    schedules = ScheduleAssigner(db).list_schedules(staff_id=staff_id, date=date)
    return create_success_response(data=[ScheduleInfo(**schedule).model_dump() for schedule in schedules])


@router.get("/orders/{order_id}", response_model=Dict[str, Any])
async def get_order_schedule(
    order_id: int = Path(..., description="Order ID"),
    current_staff: TokenData = Depends(get_staff_user),
    db: DatabaseManager = Depends(get_database)
):
    """
    Schedule of one order, data is null when it is not scheduled yet
    """
    schedule = ScheduleAssigner(db).get_assignment(order_id)
    return create_success_response(
        data=ScheduleInfo(**schedule).model_dump() if schedule else None,
        message="Scheduled" if schedule else "Not scheduled"
    )
