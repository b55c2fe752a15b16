"""
WITHDRAWAL SERVICE
==================

Vendor requests to cash out wallet earnings.

CRITICAL BUSINESS RULES:
1. A request is checked against earnings when created, but earnings are
   NOT held; they are only debited on approval
2. Approval re-checks earnings under the wallet lock, so two approvals
   racing for the same earnings cannot both succeed
3. Approval needs the bank/UPI transaction reference of the payout
4. Rejection needs a reason and has no balance effect
5. A decided request is final; deciding it again is InvalidStateError
"""

import logging
from collections.abc import Mapping

from app.extensions import db
from app.models import WithdrawalRequest, DecisionStatus
from app.services.atomic import run_atomic, load_for_update, load_wallet_for_update
from app.services.exceptions import (
    ValidationError, NotFoundError, InvalidStateError, InsufficientBalanceError
)
from app.services.pagination import paginate
from app.services.validators import to_money, require_text, optional_text
from app.services import notification_service

logger = logging.getLogger(__name__)

BANK_DETAIL_FIELDS = ('account_number', 'ifsc_code', 'account_holder_name', 'bank_name', 'upi_id')


def _clean_bank_details(bank_details):
    if not isinstance(bank_details, Mapping):
        raise ValidationError("bank_details must be an object", field='bank_details')

    cleaned = {
        field: str(bank_details[field]).strip()
        for field in BANK_DETAIL_FIELDS
        if bank_details.get(field) and str(bank_details[field]).strip()
    }
    if not cleaned.get('upi_id') and not cleaned.get('account_number'):
        raise ValidationError(
            "bank_details needs an account_number or a upi_id",
            field='bank_details'
        )
    return cleaned


def _ensure_pending(withdrawal):
    if not withdrawal.is_pending:
        raise InvalidStateError(
            f"Withdrawal {withdrawal.id} is already {withdrawal.status}",
            current_status=withdrawal.status
        )


def _insufficient(amount, available):
    return InsufficientBalanceError(
        f"Insufficient earnings. Requested: ₹{amount}, Available: ₹{available}",
        requested=float(amount),
        available=float(available)
    )


# ============================================================
# REQUEST WITHDRAWAL (Vendor)
# ============================================================

def request_withdrawal(vendor_id, amount, bank_details):
    """
    Vendor asks to withdraw wallet earnings.

    The earnings check here is advisory; approval checks again.

    Returns: WithdrawalRequest (in PENDING status)
    """
    amount = to_money(amount)
    details = _clean_bank_details(bank_details)

    def work():
        wallet = load_wallet_for_update(vendor_id)
        if amount > wallet.wallet_earnings:
            raise _insufficient(amount, wallet.wallet_earnings)

        withdrawal = WithdrawalRequest(
            vendor_id=vendor_id,
            amount=amount,
            bank_details=details,
            status=DecisionStatus.PENDING.value
        )
        db.session.add(withdrawal)
        db.session.flush()
        return withdrawal

    withdrawal = run_atomic(work, f"Request withdrawal for vendor {vendor_id}")
    logger.info("Withdrawal %s of %s requested by vendor %s", withdrawal.id, amount, vendor_id)
    return withdrawal


# ============================================================
# APPROVE WITHDRAWAL (ATOMIC - Debits wallet earnings)
# ============================================================

def approve_withdrawal(request_id, transaction_reference, admin_id=None, admin_notes=None):
    """
    Approve a pending withdrawal after paying it out.

    ATOMIC OPERATION:
    1. Lock request, check it is still pending
    2. Lock the vendor wallet and re-check earnings
    3. Debit earnings, add to total withdrawn
    4. Mark request approved with the payout reference

    Returns: WithdrawalRequest
    """
    reference = require_text(transaction_reference, 'transaction_reference')

    def work():
        withdrawal = load_for_update(WithdrawalRequest, request_id, label='Withdrawal')
        _ensure_pending(withdrawal)

        wallet = load_wallet_for_update(withdrawal.vendor_id)
        if withdrawal.amount > wallet.wallet_earnings:
            raise _insufficient(withdrawal.amount, wallet.wallet_earnings)

        wallet.wallet_earnings -= withdrawal.amount
        wallet.total_withdrawn += withdrawal.amount

        withdrawal.mark_approved(admin_id=admin_id, admin_notes=optional_text(admin_notes))
        withdrawal.transaction_reference = reference

        return withdrawal, wallet.wallet_earnings

    withdrawal, remaining = run_atomic(work, f"Approve withdrawal {request_id}")
    logger.info(
        "Withdrawal %s approved by admin %s: paid %s to vendor %s (ref %s), earnings now %s",
        withdrawal.id, admin_id, withdrawal.amount, withdrawal.vendor_id, reference, remaining
    )

    notification_service.notify_vendor(
        withdrawal.vendor_id, 'Withdrawal processed',
        f'₹{withdrawal.amount:,.2f} has been sent to your account. Reference: {reference}'
    )
    return withdrawal


# ============================================================
# REJECT WITHDRAWAL
# ============================================================

def reject_withdrawal(request_id, reason, admin_id=None):
    """Reject a pending withdrawal. No balance effect."""
    reason = require_text(reason, 'reason')

    def work():
        withdrawal = load_for_update(WithdrawalRequest, request_id, label='Withdrawal')
        _ensure_pending(withdrawal)
        withdrawal.mark_rejected(reason, admin_id=admin_id)
        return withdrawal

    withdrawal = run_atomic(work, f"Reject withdrawal {request_id}")
    logger.info("Withdrawal %s rejected by admin %s: %s", withdrawal.id, admin_id, reason)

    notification_service.notify_vendor(
        withdrawal.vendor_id, 'Withdrawal rejected',
        f'Your withdrawal of ₹{withdrawal.amount:,.2f} was rejected: {reason}'
    )
    return withdrawal


# ============================================================
# QUERIES
# ============================================================

def get_withdrawal(request_id):
    withdrawal = db.session.get(WithdrawalRequest, request_id)
    if not withdrawal:
        raise NotFoundError(f"Withdrawal {request_id} not found")
    return withdrawal


def get_pending_withdrawals(page=1, per_page=None):
    """Pending withdrawals, oldest first, with a summary of the whole queue."""
    query = WithdrawalRequest.query.filter_by(status=DecisionStatus.PENDING.value) \
        .order_by(WithdrawalRequest.request_date.asc(), WithdrawalRequest.id.asc())
    items, pagination = paginate(query, page, per_page)

    total_pending = db.session.query(
        db.func.coalesce(db.func.sum(WithdrawalRequest.amount), 0)
    ).filter(WithdrawalRequest.status == DecisionStatus.PENDING.value).scalar()

    summary = {
        'total_pending_amount': float(total_pending),
        'pending_count': pagination['total'],
    }
    return items, summary, pagination


def get_vendor_withdrawals(vendor_id, page=1, per_page=None):
    """A vendor's withdrawal requests, newest first."""
    query = WithdrawalRequest.query.filter_by(vendor_id=vendor_id) \
        .order_by(WithdrawalRequest.request_date.desc(), WithdrawalRequest.id.desc())
    return paginate(query, page, per_page)
