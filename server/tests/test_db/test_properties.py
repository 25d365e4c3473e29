"""
Property-based tests for the fulfillment core using Hypothesis.

Invariants that hold for any interleaving of payments and status requests:
- paid amount stays within 0..total and equals the payment history total
- payment status is derived from the paid amount alone
- an order is only confirmed once its upfront threshold was met
- an order is only delivered once fully paid
- the lifecycle never moves backwards and terminal statuses are final
"""

from hypothesis import given, strategies as st, settings
from hypothesis.stateful import RuleBasedStateMachine, rule, invariant, initialize

from db.errors import ValidationError, StateError
from db.manager import DatabaseManager
from db.schema import initialize_schema
from db.order_store import OrderStore
from db.payment_ledger import PaymentLedger, payment_status_for
from db.status_transitions import StatusTransitionEngine, LIFECYCLE, STATUS_LABELS
from db.supporting_operations import SupportingOperations


# ============================================================================
# Strategy Definitions
# ============================================================================

order_types = st.sampled_from(["urgent", "scheduled"])

totals = st.integers(min_value=1, max_value=5_000_000)

amounts = st.integers(min_value=-1000, max_value=6_000_000)

status_labels = st.sampled_from(sorted(STATUS_LABELS) + ["Shipped", "Refunded"])


def _rank(status):
    return len(LIFECYCLE) if status == 'cancelled' else LIFECYCLE.index(status)


# ============================================================================
# Pure derivations
# ============================================================================

class TestPaymentStatusProperties:

    @given(total=totals, data=st.data())
    def test_status_partition(self, total, data):
        paid = data.draw(st.integers(min_value=0, max_value=total))
        status = payment_status_for(paid, total)

        assert (status == 'unpaid') == (paid == 0)
        assert (status == 'paid') == (paid == total)
        assert (status == 'partially_paid') == (0 < paid < total)

    @given(total=totals, order_type=order_types)
    def test_upfront_requirement_is_smallest_qualifying_amount(self, total, order_type):
        ledger = PaymentLedger(db_manager=None)
        order = {'order_type': order_type, 'total_cents': total, 'paid_cents': 0}
        required = ledger.upfront_required_cents(order)

        assert 0 < required <= total
        assert ledger._upfront_met(dict(order, paid_cents=required))
        assert not ledger._upfront_met(dict(order, paid_cents=required - 1))


# ============================================================================
# Stateful model
# ============================================================================

class OrderLifecycleMachine(RuleBasedStateMachine):
    """Random payments and status requests against a single order"""

    def __init__(self):
        super().__init__()
        self.db = DatabaseManager(":memory:", auto_connect=True)
        initialize_schema(self.db)
        self.store = OrderStore(self.db)
        self.ledger = PaymentLedger(self.db)
        self.engine = StatusTransitionEngine(self.db, ledger=self.ledger)
        self.customer = SupportingOperations(self.db).register_user(name="Prop Customer")
        self.order_id = None
        self.history = []

    @initialize(order_type=order_types, total=totals)
    def create_order(self, order_type, total):
        order = self.store.create_order(
            customer_id=self.customer['user_id'],
            line_items=[{"menu_item_id": 1, "quantity": 1, "unit_price_cents": total}],
            order_type=order_type,
            delivery_date="2025-12-20" if order_type == 'scheduled' else None
        )
        self.order_id = order['order_id']
        self.history.append(order['status'])

    @rule(amount=amounts)
    def pay(self, amount):
        before = self.ledger.get_order(self.order_id)
        try:
            after = self.ledger.record_payment(self.order_id, amount, 'cash')['order']
        except (ValidationError, StateError):
            assert self.ledger.get_order(self.order_id)['paid_cents'] == before['paid_cents']
            return
        assert after['paid_cents'] == before['paid_cents'] + amount

    @rule(label=status_labels)
    def transition(self, label):
        before = self.ledger.get_order(self.order_id)
        try:
            after = self.engine.request_transition(self.order_id, label)
        except (ValidationError, StateError):
            assert self.store.get_order(self.order_id)['status'] == before['status']
            return

        if after['status'] == 'confirmed':
            assert before['minimum_upfront_met']
        if after['status'] == 'delivered':
            assert before['payment_status'] == 'paid'
        self.history.append(after['status'])

    @invariant()
    def paid_within_bounds(self):
        if self.order_id is None:
            return
        order = self.ledger.get_order(self.order_id)
        recorded = sum(p['amount_cents'] for p in self.ledger.payment_history(self.order_id))

        assert 0 <= order['paid_cents'] <= order['total_cents']
        assert order['paid_cents'] == recorded
        assert order['payment_status'] == payment_status_for(order['paid_cents'], order['total_cents'])

    @invariant()
    def lifecycle_moves_forward(self):
        ranks = [_rank(status) for status in self.history]
        assert ranks == sorted(ranks)
        assert 'delivered' not in self.history[:-1]
        assert 'cancelled' not in self.history[:-1]

    def teardown(self):
        self.db.close()


OrderLifecycleMachine.TestCase.settings = settings(max_examples=50, stateful_step_count=30, deadline=None)
TestOrderLifecycle = OrderLifecycleMachine.TestCase
