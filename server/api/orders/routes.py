# Order API routes: checkout, lifecycle, payments
# Domain errors propagate to the FulfillmentError handler in api.main

import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, HTTPException, Depends, Query, Path, BackgroundTasks, status

from .models import (
    CreateOrderRequest, UpdateStatusRequest, RecordPaymentRequest, OrderInfo, PaymentInfo
)
from api.auth.dependencies import get_current_user, get_staff_user, get_database, config
from api.auth.models import TokenData
from db.manager import DatabaseManager
from db.order_store import OrderStore
from db.payment_ledger import PaymentLedger
from db.status_transitions import StatusTransitionEngine
from services.events import EventSink
from services.messaging_service import MessagingService
from services.notification_dispatcher import dispatch_in_background
from utils.response import create_success_response, create_pagination_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["orders"])

messaging_service = MessagingService.from_config(config.config)


def get_messaging_service() -> MessagingService:
    return messaging_service


def get_event_sink(
    background_tasks: BackgroundTasks,
    db: DatabaseManager = Depends(get_database),
    messaging: MessagingService = Depends(get_messaging_service)
) -> EventSink:
    """Queue notifications to run after the response has been sent"""
    def sink(event):
        background_tasks.add_task(dispatch_in_background, db.db_path, messaging, event)
    return sink


def _ledger(db: DatabaseManager, event_sink: Optional[EventSink] = None) -> PaymentLedger:
    return PaymentLedger(db, event_sink=event_sink, upfront_percent=config.get_upfront_percent())


def _order_info(order: Dict[str, Any]) -> Dict[str, Any]:
    return OrderInfo(
        **order,
        total_etb=order['total_cents'] / 100.0,
        paid_etb=order['paid_cents'] / 100.0,
        remaining_etb=order['remaining_cents'] / 100.0
    ).model_dump()


def _payment_info(payment: Dict[str, Any]) -> Dict[str, Any]:
    return PaymentInfo(**payment, amount_etb=payment['amount_cents'] / 100.0).model_dump()


def _ensure_can_view(order: Dict[str, Any], current_user: TokenData):
    if not current_user.is_staff and order['customer_id'] != current_user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own orders")


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_order(
    order_request: CreateOrderRequest,
    current_user: TokenData = Depends(get_current_user),
    db: DatabaseManager = Depends(get_database)
):
    """
    Checkout: create a pending, unpaid order for the caller
    """
    order = OrderStore(db).create_order(
        customer_id=current_user.user_id,
        line_items=[item.model_dump() for item in order_request.line_items],
        order_type=order_request.order_type,
        delivery_date=order_request.delivery_date,
        delivery_address=order_request.delivery_address
    )
    described = _ledger(db).describe(order)

    return create_success_response(
        data=_order_info(described),
        message=(f"Order placed. Pay {described['upfront_required_cents']/100:.2f} ETB "
                 f"({described['upfront_percent']}%) to confirm.")
    )


@router.get("", response_model=Dict[str, Any])
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status", description="Lifecycle status"),
    customer_id: Optional[int] = Query(None, description="Staff only: filter by customer"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: TokenData = Depends(get_current_user),
    db: DatabaseManager = Depends(get_database)
):
    """
    List orders; customers only ever see their own
    """
    if not current_user.is_staff:
        customer_id = current_user.user_id

    result = OrderStore(db).list_orders(status=status_filter, customer_id=customer_id,
                                        offset=offset, limit=limit)
    ledger = _ledger(db)

    return create_pagination_response(
        items=[_order_info(ledger.describe(order)) for order in result['orders']],
        total_count=result['total_count'],
        offset=offset,
        limit=limit
    )


@router.get("/{order_id}", response_model=Dict[str, Any])
async def get_order(
    order_id: int = Path(..., description="Order ID"),
    current_user: TokenData = Depends(get_current_user),
    db: DatabaseManager = Depends(get_database)
):
    """
    Fetch an order with payment status and remaining balance
    """
    ledger = _ledger(db)
    order = ledger.get_order(order_id)
    _ensure_can_view(order, current_user)

    data = _order_info(order)
    data['allowed_transitions'] = StatusTransitionEngine(db, ledger=ledger).allowed_transitions(order_id) \
        if current_user.is_staff else []
    return create_success_response(data=data)


@router.post("/{order_id}/accept", response_model=Dict[str, Any])
async def accept_order(
    order_id: int = Path(..., description="Order ID"),
    current_staff: TokenData = Depends(get_staff_user),
    db: DatabaseManager = Depends(get_database),
    event_sink: EventSink = Depends(get_event_sink)
):
    """
    Accept a pending order (moves it to confirmed once the upfront payment is met)
    """
    engine = StatusTransitionEngine(db, ledger=_ledger(db), event_sink=event_sink)
    order = engine.accept_order(order_id, operator_id=current_staff.user_id)

    return create_success_response(data=_order_info(order), message=f"Order {order_id} accepted")


@router.put("/{order_id}/status", response_model=Dict[str, Any])
async def update_order_status(
    status_request: UpdateStatusRequest,
    order_id: int = Path(..., description="Order ID"),
    current_staff: TokenData = Depends(get_staff_user),
    db: DatabaseManager = Depends(get_database),
    event_sink: EventSink = Depends(get_event_sink)
):
    """
    Move an order along its lifecycle
    """
    engine = StatusTransitionEngine(db, ledger=_ledger(db), event_sink=event_sink)
    order = engine.request_transition(
        order_id,
        status_request.status,
        operator_id=current_staff.user_id,
        reason=status_request.reason
    )

    return create_success_response(data=_order_info(order), message=f"Order {order_id} is now {order['status']}")


@router.post("/{order_id}/payments", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_request: RecordPaymentRequest,
    order_id: int = Path(..., description="Order ID"),
    current_staff: TokenData = Depends(get_staff_user),
    db: DatabaseManager = Depends(get_database),
    event_sink: EventSink = Depends(get_event_sink)
):
    """
    Record a payment collected for an order
    """
    result = _ledger(db, event_sink).record_payment(
        order_id,
        payment_request.amount_cents,
        payment_request.method,
        notes=payment_request.notes,
        recorded_by=current_staff.user_id,
        external_ref=payment_request.external_ref
    )
    order = result['order']

    return create_success_response(
        data={
            'order': _order_info(order),
            'payment': _payment_info(result['payment'])
        },
        message=f"Payment recorded, remaining balance {order['remaining_cents']/100:.2f} ETB"
    )


@router.get("/{order_id}/payments", response_model=Dict[str, Any])
async def get_payment_history(
    order_id: int = Path(..., description="Order ID"),
    current_user: TokenData = Depends(get_current_user),
    db: DatabaseManager = Depends(get_database)
):
    """
    Payment history of an order, oldest first
    """
    ledger = _ledger(db)
    order = ledger.get_order(order_id)
    _ensure_can_view(order, current_user)

    payments = [_payment_info(payment) for payment in ledger.payment_history(order_id)]
    return create_success_response(data={
        'order_id': order_id,
        'payment_status': order['payment_status'],
        'remaining_cents': order['remaining_cents'],
        'payments': payments
    })
