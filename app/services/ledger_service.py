"""
LEDGER SERVICE - CASH EVENTS & VENDOR BALANCES
==============================================

CRITICAL BUSINESS RULES:
1. CashEvent rows are append-only; corrections are new offsetting events
2. The cached wallet totals change in the SAME transaction as the event
3. 'cash_collected' raises the due balance and re-runs the credit limit guard
4. 'credit'/'refund' raise wallet earnings, 'debit' lowers them (never below 0)
5. 'payment' is recorded for audit only
6. A booking can produce each event type once (idempotency key per booking)
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models import (
    Vendor, VendorWallet, CashEvent, Settlement, WithdrawalRequest,
    CashEventType, DecisionStatus, ZERO
)
from app.services.atomic import run_atomic, load_wallet_for_update
from app.services.credit_limit_service import evaluate_credit_limit
from app.services.exceptions import (
    ValidationError, NotFoundError, InsufficientBalanceError, DuplicateEventError
)
from app.services.pagination import paginate
from app.services.validators import to_money, require_text, optional_text
from app.services import notification_service

logger = logging.getLogger(__name__)


# ============================================================
# IDEMPOTENCY HELPERS
# ============================================================

def generate_idempotency_key(prefix="evt"):
    """Generate unique idempotency key"""
    return f"{prefix}_{uuid.uuid4().hex}"


def booking_event_key(event_type, booking_id):
    """Deterministic key so a booking's event can only be recorded once."""
    return f"{event_type.value}:{booking_id}"


def check_idempotency(idempotency_key):
    """Check if an event with this key already exists"""
    return CashEvent.query.filter_by(idempotency_key=idempotency_key).first()


# ============================================================
# VENDOR & WALLET CREATION
# ============================================================

def create_vendor(name, business_name=None, phone=None, email=None, cash_limit=None):
    """Register a vendor together with its empty wallet."""
    name = require_text(name, 'name')
    if cash_limit is None:
        cash_limit = current_app.config.get('DEFAULT_CASH_LIMIT', 10000)
    limit = to_money(cash_limit, field='cash_limit')

    def work():
        vendor = Vendor(
            name=name,
            business_name=optional_text(business_name),
            phone=optional_text(phone),
            email=optional_text(email),
        )
        db.session.add(vendor)
        db.session.flush()

        vendor.wallet = VendorWallet(
            vendor_id=vendor.id,
            due_balance=ZERO,
            wallet_earnings=ZERO,
            total_cash_collected=ZERO,
            total_settled=ZERO,
            total_withdrawn=ZERO,
            cash_limit=limit,
            is_blocked=False,
            last_recalculated_at=datetime.utcnow()
        )
        db.session.flush()
        return vendor

    vendor = run_atomic(work, "Create vendor")
    logger.info("Vendor %s created with cash limit %s", vendor.id, limit)
    return vendor


# ============================================================
# RECORD CASH EVENT (ATOMIC)
# ============================================================

def _parse_event_type(event_type):
    try:
        return CashEventType(getattr(event_type, 'value', event_type))
    except ValueError:
        valid = ', '.join(t.value for t in CashEventType)
        raise ValidationError(f"Unknown event type '{event_type}'. Expected one of: {valid}",
                              field='type')


def _append_event(wallet, event_type, amount, booking_id=None, description=None,
                  created_by=None, idempotency_key=None):
    """
    Apply one event to a locked wallet and append its record.

    Returns (CashEvent, blocked) where `blocked` tells whether the credit
    limit guard blocked the vendor because of this event.
    """
    if not idempotency_key:
        if booking_id is not None:
            idempotency_key = booking_event_key(event_type, booking_id)
        else:
            idempotency_key = generate_idempotency_key(event_type.value)

    if check_idempotency(idempotency_key):
        raise DuplicateEventError(
            f"Event already recorded ({idempotency_key})",
            idempotency_key=idempotency_key
        )

    blocked = False

    if event_type is CashEventType.CASH_COLLECTED:
        wallet.due_balance += amount
        wallet.total_cash_collected += amount
        blocked = evaluate_credit_limit(wallet)

    elif event_type in (CashEventType.CREDIT, CashEventType.REFUND):
        wallet.wallet_earnings += amount

    elif event_type is CashEventType.DEBIT:
        if amount > wallet.wallet_earnings:
            raise InsufficientBalanceError(
                f"Insufficient earnings. Required: ₹{amount}, Available: ₹{wallet.wallet_earnings}",
                available=float(wallet.wallet_earnings)
            )
        wallet.wallet_earnings -= amount

    cash_event = CashEvent(
        vendor_id=wallet.vendor_id,
        booking_id=str(booking_id) if booking_id is not None else None,
        event_type=event_type.value,
        amount=amount,
        description=description or f"{event_type.value.replace('_', ' ').capitalize()} ₹{amount}",
        idempotency_key=idempotency_key,
        created_by=created_by
    )
    db.session.add(cash_event)

    try:
        db.session.flush()
    except IntegrityError:
        raise DuplicateEventError(
            f"Event already recorded ({idempotency_key})",
            idempotency_key=idempotency_key
        )

    return cash_event, blocked


def record_cash_event(vendor_id, amount, event_type, booking_id=None, description=None,
                      created_by=None, idempotency_key=None):
    """
    Record one cash fact about a vendor.

    ATOMIC: the event row and the wallet totals are written together.

    Returns: CashEvent
    """
    amount = to_money(amount)
    event_type = _parse_event_type(event_type)

    def work():
        wallet = load_wallet_for_update(vendor_id)
        return _append_event(
            wallet, event_type, amount,
            booking_id=booking_id,
            description=optional_text(description),
            created_by=created_by,
            idempotency_key=idempotency_key
        )

    cash_event, blocked = run_atomic(work, f"Record {event_type.value} for vendor {vendor_id}")
    logger.info(
        "Recorded %s of %s for vendor %s (booking %s)",
        event_type.value, amount, vendor_id, booking_id
    )

    if blocked:
        _notify_blocked(vendor_id)
    return cash_event


def record_cash_collection(vendor_id, booking_id, amount, vendor_earning=None, created_by=None):
    """
    Booking completed and paid in cash.

    ATOMIC: records the 'cash_collected' event (vendor now owes the
    collected amount) and, when the vendor earned something on the job,
    the matching 'credit' to wallet earnings.

    Returns: (cash_collected CashEvent, credit CashEvent or None)
    """
    booking_id = require_text(booking_id, 'booking_id')
    amount = to_money(amount)
    earning = to_money(vendor_earning, field='vendor_earning') if vendor_earning else None

    def work():
        wallet = load_wallet_for_update(vendor_id)

        collected, blocked = _append_event(
            wallet, CashEventType.CASH_COLLECTED, amount,
            booking_id=booking_id,
            description=f"Cash ₹{amount} collected for booking {booking_id}",
            created_by=created_by
        )

        credit = None
        if earning:
            credit, _ = _append_event(
                wallet, CashEventType.CREDIT, earning,
                booking_id=booking_id,
                description=f"Earnings ₹{earning} credited for booking {booking_id}",
                created_by=created_by
            )
        return collected, credit, blocked

    collected, credit, blocked = run_atomic(work, f"Record cash collection for booking {booking_id}")
    logger.info(
        "Cash collection for booking %s: vendor %s collected %s, earned %s",
        booking_id, vendor_id, amount, earning or ZERO
    )

    if blocked:
        _notify_blocked(vendor_id)
    return collected, credit


def _notify_blocked(vendor_id):
    wallet = get_wallet(vendor_id)
    notification_service.notify_vendor(vendor_id, 'Account blocked', wallet.block_reason)


# ============================================================
# BALANCES
# ============================================================

def get_wallet(vendor_id):
    """Current balance row of a vendor (no lock)."""
    wallet = VendorWallet.query.filter_by(vendor_id=vendor_id).first()
    if not wallet:
        raise NotFoundError(f"Vendor {vendor_id} not found")
    return wallet


def due_balance(vendor_id):
    """Amount the vendor owes the platform. Never negative."""
    return max(get_wallet(vendor_id).due_balance, ZERO)


def wallet_earnings(vendor_id):
    """Earnings the vendor can withdraw. Never negative."""
    return max(get_wallet(vendor_id).wallet_earnings, ZERO)


def get_wallet_summary(vendor_id):
    """Balance record of a vendor plus its open claims."""
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor or not vendor.wallet:
        raise NotFoundError(f"Vendor {vendor_id} not found")

    pending_settlements = _pending_totals(Settlement, vendor_id)
    pending_withdrawals = _pending_totals(WithdrawalRequest, vendor_id)

    summary = vendor.wallet.to_dict()
    summary.update({
        'vendor_name': vendor.name,
        'business_name': vendor.business_name,
        'pending_settlements': pending_settlements,
        'pending_withdrawals': pending_withdrawals,
    })
    return summary


def _pending_totals(model, vendor_id):
    count, total = db.session.query(
        db.func.count(model.id),
        db.func.coalesce(db.func.sum(model.amount), 0)
    ).filter(
        model.vendor_id == vendor_id,
        model.status == DecisionStatus.PENDING.value
    ).one()
    return {'count': count, 'amount': float(total)}


# ============================================================
# BALANCE RECALCULATION (AUDIT)
# ============================================================

def _sum_events(vendor_id, *event_types):
    total = db.session.query(db.func.sum(CashEvent.amount)).filter(
        CashEvent.vendor_id == vendor_id,
        CashEvent.event_type.in_([t.value for t in event_types])
    ).scalar()
    return Decimal(str(total or 0))


def _sum_approved(column, vendor_id):
    model = column.class_
    total = db.session.query(db.func.sum(column)).filter(
        model.vendor_id == vendor_id,
        model.status == DecisionStatus.APPROVED.value
    ).scalar()
    return Decimal(str(total or 0))


def recalculate_balances(vendor_id):
    """
    Recompute a vendor's balances from its event stream and decisions.

    due      = cash collected - applied settlements (floored at 0)
    earnings = credits + refunds - debits - approved withdrawals

    Corrects the cached totals if they drifted by more than 0.01.
    """
    def work():
        wallet = load_wallet_for_update(vendor_id)

        collected = _sum_events(vendor_id, CashEventType.CASH_COLLECTED)
        settled = _sum_approved(Settlement.applied_amount, vendor_id)
        credited = _sum_events(vendor_id, CashEventType.CREDIT, CashEventType.REFUND)
        debited = _sum_events(vendor_id, CashEventType.DEBIT)
        withdrawn = _sum_approved(WithdrawalRequest.amount, vendor_id)

        calculated_due = max(collected - settled, ZERO)
        calculated_earnings = credited - debited - withdrawn

        previous_due = wallet.due_balance
        previous_earnings = wallet.wallet_earnings

        was_corrected = (
            abs(calculated_due - previous_due) > Decimal('0.01')
            or abs(calculated_earnings - previous_earnings) > Decimal('0.01')
        )
        if was_corrected:
            wallet.due_balance = calculated_due
            wallet.wallet_earnings = calculated_earnings
            evaluate_credit_limit(wallet)

        wallet.total_cash_collected = collected
        wallet.total_settled = settled
        wallet.total_withdrawn = withdrawn
        wallet.last_recalculated_at = datetime.utcnow()

        return {
            'vendor_id': vendor_id,
            'previous_due_balance': float(previous_due),
            'calculated_due_balance': float(calculated_due),
            'previous_wallet_earnings': float(previous_earnings),
            'calculated_wallet_earnings': float(calculated_earnings),
            'was_corrected': was_corrected,
            'total_cash_collected': float(collected),
            'total_settled': float(settled),
            'total_withdrawn': float(withdrawn),
        }

    result = run_atomic(work, f"Recalculate balances for vendor {vendor_id}")
    if result['was_corrected']:
        logger.warning("Balances for vendor %s corrected: %s", vendor_id, result)
    return result


# ============================================================
# EVENT HISTORY
# ============================================================

def get_vendor_events(vendor_id, event_type=None, page=1, per_page=None):
    """A vendor's cash events, newest first."""
    if db.session.get(Vendor, vendor_id) is None:
        raise NotFoundError(f"Vendor {vendor_id} not found")

    query = CashEvent.query.filter_by(vendor_id=vendor_id)
    if event_type:
        query = query.filter_by(event_type=_parse_event_type(event_type).value)

    return paginate(
        query.order_by(CashEvent.created_at.desc(), CashEvent.id.desc()),
        page, per_page
    )
