"""
CREDIT LIMIT SERVICE
====================

Keeps a vendor's block flag in line with its cash limit.

CRITICAL BUSINESS RULES:
1. Evaluation only ever BLOCKS (due_balance >= cash_limit); it never unblocks
2. Unblocking is a manual admin action and leaves the due balance untouched
3. Changing the cash limit re-evaluates immediately, so a lower limit can
   block retroactively while a higher one still needs a manual unblock
4. The guard only flips the flag; booking acceptance enforces it elsewhere
"""

import logging
from datetime import datetime

from app.extensions import db
from app.models import VendorWallet
from app.services.atomic import run_atomic, load_wallet_for_update
from app.services.exceptions import NotFoundError
from app.services.validators import to_money, optional_text
from app.services import notification_service

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = 'Blocked by admin due to pending dues.'


# ============================================================
# EVALUATION (runs inside the caller's unit of work)
# ============================================================

def evaluate_credit_limit(wallet):
    """
    Block the vendor if its due balance reached the cash limit.

    Must be called with `wallet` already locked, after the due balance
    changed. Returns True if this evaluation blocked the vendor.
    """
    wallet.last_evaluated_at = datetime.utcnow()

    if wallet.due_balance < wallet.cash_limit:
        return False

    if wallet.is_blocked:
        return False

    wallet.is_blocked = True
    wallet.blocked_at = datetime.utcnow()
    wallet.block_reason = (
        f"Cash limit exceeded. Amount due: ₹{wallet.due_balance:,.2f}, "
        f"Limit: ₹{wallet.cash_limit:,.2f}"
    )
    logger.warning(
        "Vendor %s auto-blocked: due %s >= limit %s",
        wallet.vendor_id, wallet.due_balance, wallet.cash_limit
    )
    return True


# ============================================================
# ADMIN OVERRIDES
# ============================================================

def block_vendor(vendor_id, reason=None, admin_id=None):
    """Manually block a vendor from new cash jobs."""
    reason = optional_text(reason) or DEFAULT_BLOCK_REASON

    def work():
        wallet = load_wallet_for_update(vendor_id)
        wallet.is_blocked = True
        wallet.blocked_at = datetime.utcnow()
        wallet.block_reason = reason
        return wallet

    wallet = run_atomic(work, f"Block vendor {vendor_id}")
    logger.info("Vendor %s blocked by admin %s: %s", vendor_id, admin_id, reason)

    notification_service.notify_vendor(
        vendor_id, 'Account blocked', f'Your account has been blocked: {reason}'
    )
    return wallet


def unblock_vendor(vendor_id, admin_id=None):
    """
    Clear the block flag unconditionally.

    Dues and block state are administered independently, so the due
    balance is left as it is. The next cash collection or settlement
    approval re-evaluates the limit.
    """
    def work():
        wallet = load_wallet_for_update(vendor_id)
        wallet.is_blocked = False
        wallet.blocked_at = None
        wallet.block_reason = None
        return wallet

    wallet = run_atomic(work, f"Unblock vendor {vendor_id}")
    logger.info(
        "Vendor %s unblocked by admin %s (due balance %s)",
        vendor_id, admin_id, wallet.due_balance
    )

    notification_service.notify_vendor(
        vendor_id, 'Account unblocked', 'You can accept cash jobs again.'
    )
    return wallet


def update_cash_limit(vendor_id, new_limit, admin_id=None):
    """Set a new cash limit and re-run the guard against it."""
    limit = to_money(new_limit, field='limit')

    def work():
        wallet = load_wallet_for_update(vendor_id)
        previous = wallet.cash_limit
        wallet.cash_limit = limit
        blocked = evaluate_credit_limit(wallet)
        return wallet, previous, blocked

    wallet, previous, blocked = run_atomic(work, f"Update cash limit for vendor {vendor_id}")
    logger.info(
        "Cash limit for vendor %s changed %s -> %s by admin %s",
        vendor_id, previous, limit, admin_id
    )

    if blocked:
        notification_service.notify_vendor(vendor_id, 'Account blocked', wallet.block_reason)
    return wallet


# ============================================================
# QUERIES
# ============================================================

def is_vendor_blocked(vendor_id):
    """Block flag as seen by the booking-acceptance collaborator."""
    wallet = VendorWallet.query.filter_by(vendor_id=vendor_id).first()
    if not wallet:
        raise NotFoundError(f"Vendor {vendor_id} not found")
    db.session.refresh(wallet)
    return wallet.is_blocked
