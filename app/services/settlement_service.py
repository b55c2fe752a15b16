"""
SETTLEMENT SERVICE
==================

Vendor claims of having paid their cash dues to the platform.

CRITICAL BUSINESS RULES:
1. Submitting a settlement does NOT touch the due balance
2. Approval reduces the due balance by min(amount, current due); the
   excess of an overpayment is not tracked
3. Approval and the balance change commit together (one unit of work)
4. Approval re-runs the credit limit guard; it never unblocks
5. Rejection needs a reason and has no balance effect
6. A decided settlement is final; deciding it again is InvalidStateError
"""

import logging

from app.extensions import db
from app.models import Settlement, Vendor, DecisionStatus, PaymentMethod, ZERO
from app.services.atomic import run_atomic, load_for_update, load_wallet_for_update
from app.services.credit_limit_service import evaluate_credit_limit
from app.services.exceptions import ValidationError, NotFoundError, InvalidStateError
from app.services.pagination import paginate
from app.services.validators import to_money, require_text, optional_text
from app.services import notification_service

logger = logging.getLogger(__name__)


def _parse_payment_method(payment_method):
    try:
        return PaymentMethod(payment_method or PaymentMethod.OTHER.value)
    except ValueError:
        valid = ', '.join(m.value for m in PaymentMethod)
        raise ValidationError(
            f"Unknown payment method '{payment_method}'. Expected one of: {valid}",
            field='payment_method'
        )


def _ensure_pending(settlement):
    if not settlement.is_pending:
        raise InvalidStateError(
            f"Settlement {settlement.id} is already {settlement.status}",
            current_status=settlement.status
        )


# ============================================================
# SUBMIT SETTLEMENT (Vendor)
# ============================================================

def submit_settlement(vendor_id, amount, payment_method, payment_reference,
                      payment_proof=None, vendor_notes=None):
    """
    Vendor declares a cash payment to the platform.

    Returns: Settlement (in PENDING status)
    """
    amount = to_money(amount)
    method = _parse_payment_method(payment_method)
    reference = require_text(payment_reference, 'payment_reference')

    def work():
        if db.session.get(Vendor, vendor_id) is None:
            raise NotFoundError(f"Vendor {vendor_id} not found")

        settlement = Settlement(
            vendor_id=vendor_id,
            amount=amount,
            payment_method=method.value,
            payment_reference=reference,
            payment_proof=optional_text(payment_proof),
            vendor_notes=optional_text(vendor_notes),
            status=DecisionStatus.PENDING.value
        )
        db.session.add(settlement)
        db.session.flush()
        return settlement

    settlement = run_atomic(work, f"Submit settlement for vendor {vendor_id}")
    logger.info("Settlement %s of %s submitted by vendor %s", settlement.id, amount, vendor_id)
    return settlement


# ============================================================
# APPROVE SETTLEMENT (ATOMIC - Updates due balance)
# ============================================================

def approve_settlement(settlement_id, admin_id=None, admin_notes=None):
    """
    Approve a pending settlement.

    ATOMIC OPERATION:
    1. Lock settlement, check it is still pending
    2. Lock the vendor wallet
    3. Reduce due balance by min(amount, due)
    4. Re-run the credit limit guard
    5. Mark settlement approved with applied amount and balance after

    Returns: Settlement
    """
    def work():
        settlement = load_for_update(Settlement, settlement_id)
        _ensure_pending(settlement)

        wallet = load_wallet_for_update(settlement.vendor_id)

        applied = min(settlement.amount, max(wallet.due_balance, ZERO))
        wallet.due_balance = max(wallet.due_balance - applied, ZERO)
        wallet.total_settled += applied
        blocked = evaluate_credit_limit(wallet)

        settlement.mark_approved(admin_id=admin_id, admin_notes=optional_text(admin_notes))
        settlement.applied_amount = applied
        settlement.balance_after = wallet.due_balance

        return settlement, blocked

    settlement, blocked = run_atomic(work, f"Approve settlement {settlement_id}")
    logger.info(
        "Settlement %s approved by admin %s: applied %s of %s, vendor %s due now %s",
        settlement.id, admin_id, settlement.applied_amount, settlement.amount,
        settlement.vendor_id, settlement.balance_after
    )
    if settlement.applied_amount < settlement.amount:
        logger.warning(
            "Settlement %s exceeded due balance by %s; excess not tracked",
            settlement.id, settlement.amount - settlement.applied_amount
        )

    notification_service.notify_vendor(
        settlement.vendor_id, 'Settlement approved',
        f'Your settlement of ₹{settlement.amount:,.2f} was approved. '
        f'Amount due: ₹{settlement.balance_after:,.2f}'
    )
    if blocked:
        notification_service.notify_vendor(
            settlement.vendor_id, 'Account blocked', 'Your dues still exceed your cash limit.'
        )
    return settlement


# ============================================================
# REJECT SETTLEMENT
# ============================================================

def reject_settlement(settlement_id, reason, admin_id=None):
    """Reject a pending settlement. No balance effect."""
    reason = require_text(reason, 'reason')

    def work():
        settlement = load_for_update(Settlement, settlement_id)
        _ensure_pending(settlement)
        settlement.mark_rejected(reason, admin_id=admin_id)
        return settlement

    settlement = run_atomic(work, f"Reject settlement {settlement_id}")
    logger.info("Settlement %s rejected by admin %s: %s", settlement.id, admin_id, reason)

    notification_service.notify_vendor(
        settlement.vendor_id, 'Settlement rejected',
        f'Your settlement of ₹{settlement.amount:,.2f} was rejected: {reason}'
    )
    return settlement


# ============================================================
# QUERIES
# ============================================================

def get_settlement(settlement_id):
    settlement = db.session.get(Settlement, settlement_id)
    if not settlement:
        raise NotFoundError(f"Settlement {settlement_id} not found")
    return settlement


def get_pending_settlements(page=1, per_page=None):
    """Pending settlements, oldest first, with a summary of the whole queue."""
    query = Settlement.query.filter_by(status=DecisionStatus.PENDING.value) \
        .order_by(Settlement.created_at.asc(), Settlement.id.asc())
    items, pagination = paginate(query, page, per_page)

    total_pending = db.session.query(
        db.func.coalesce(db.func.sum(Settlement.amount), 0)
    ).filter(Settlement.status == DecisionStatus.PENDING.value).scalar()

    summary = {
        'total_pending_amount': float(total_pending),
        'pending_count': pagination['total'],
    }
    return items, summary, pagination


def get_settlement_history(status=None, vendor_id=None, page=1, per_page=None):
    """Settlements of every status, newest first."""
    query = Settlement.query
    if status:
        try:
            query = query.filter_by(status=DecisionStatus(status).value)
        except ValueError:
            raise ValidationError(f"Unknown status '{status}'", field='status')
    if vendor_id:
        query = query.filter_by(vendor_id=vendor_id)

    return paginate(
        query.order_by(Settlement.created_at.desc(), Settlement.id.desc()),
        page, per_page
    )
