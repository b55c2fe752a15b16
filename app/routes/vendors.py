"""
VENDOR CONTROL ROUTES
=====================

Admin overrides on a vendor's credit ceiling, booking cash collections
that carry the billed earning, plus balance lookups shared by admins and
the vendor itself.
"""

from flask import Blueprint
from flask_login import login_required, current_user

from app.routes import json_body, ok
from app.services.authorization_service import (
    admin_required, can_act_for_vendor, require_authorization
)
from app.services.credit_limit_service import (
    block_vendor, unblock_vendor, update_cash_limit, is_vendor_blocked
)
from app.services.ledger_service import get_wallet_summary, record_cash_collection

vendors_bp = Blueprint('vendors', __name__)


# ============== UPDATE CASH LIMIT (Admin) ==============
@vendors_bp.route('/admin/vendors/<int:vendor_id>/cash-limit', methods=['POST'])
@admin_required
def cash_limit(vendor_id):
    payload = json_body()
    wallet = update_cash_limit(vendor_id, payload.get('limit'), admin_id=current_user.id)
    return ok(wallet.to_dict(), message='Cash limit updated successfully')


# ============== BLOCK VENDOR (Admin) ==============
@vendors_bp.route('/admin/vendors/<int:vendor_id>/block', methods=['POST'])
@admin_required
def block(vendor_id):
    payload = json_body()
    wallet = block_vendor(vendor_id, reason=payload.get('reason'), admin_id=current_user.id)
    return ok(wallet.to_dict(), message='Vendor blocked successfully')


# ============== UNBLOCK VENDOR (Admin) ==============
@vendors_bp.route('/admin/vendors/<int:vendor_id>/unblock', methods=['POST'])
@admin_required
def unblock(vendor_id):
    wallet = unblock_vendor(vendor_id, admin_id=current_user.id)
    return ok(wallet.to_dict(), message='Vendor unblocked successfully')


# ============== RECORD BOOKING CASH (Admin / booking service) ==============
@vendors_bp.route('/admin/vendors/<int:vendor_id>/cash-collection', methods=['POST'])
@admin_required
def booking_cash_collection(vendor_id):
    payload = json_body()
    collected, credit = record_cash_collection(
        vendor_id,
        booking_id=payload.get('booking_id'),
        amount=payload.get('amount'),
        vendor_earning=payload.get('vendor_earning'),
        created_by=current_user.id
    )
    return ok(
        {
            'cash_collected': collected.to_dict(),
            'earnings_credit': credit.to_dict() if credit else None,
            'wallet': get_wallet_summary(vendor_id),
        },
        message='Cash collection recorded',
        status=201
    )


# ============== WALLET SUMMARY ==============
@vendors_bp.route('/vendors/<int:vendor_id>/wallet')
@login_required
def wallet_summary(vendor_id):
    require_authorization(can_act_for_vendor, current_user, vendor_id)
    return ok(get_wallet_summary(vendor_id))


# ============== BLOCK STATUS (booking acceptance) ==============
@vendors_bp.route('/vendors/<int:vendor_id>/block-status')
@login_required
def block_status(vendor_id):
    require_authorization(can_act_for_vendor, current_user, vendor_id)
    return ok({'vendor_id': vendor_id, 'is_blocked': is_vendor_blocked(vendor_id)})
