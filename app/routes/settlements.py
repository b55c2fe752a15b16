"""
SETTLEMENT ROUTES (Admin)
=========================

Uses settlement_service and reporting_service for all operations.
"""

from flask import Blueprint, request
from flask_login import current_user

from app.routes import json_body, page_args, flag_arg, ok
from app.services.authorization_service import admin_required
from app.services.ledger_service import recalculate_balances
from app.services.reporting_service import get_dashboard, get_vendor_balances, get_vendor_ledger
from app.services.settlement_service import (
    approve_settlement, reject_settlement,
    get_pending_settlements, get_settlement_history
)

settlements_bp = Blueprint('settlements', __name__, url_prefix='/admin/settlements')


# ============== PENDING SETTLEMENTS ==============
@settlements_bp.route('/pending')
@admin_required
def pending_settlements():
    settlements, summary, pagination = get_pending_settlements(**page_args())
    return ok(
        [s.to_dict() for s in settlements],
        summary=summary,
        pagination=pagination
    )


# ============== SETTLEMENT HISTORY ==============
@settlements_bp.route('/history')
@admin_required
def settlement_history():
    settlements, pagination = get_settlement_history(
        status=request.args.get('status'),
        vendor_id=request.args.get('vendor_id', type=int),
        **page_args()
    )
    return ok([s.to_dict() for s in settlements], pagination=pagination)


# ============== APPROVE SETTLEMENT ==============
@settlements_bp.route('/<int:settlement_id>/approve', methods=['POST'])
@admin_required
def approve(settlement_id):
    payload = json_body()
    settlement = approve_settlement(
        settlement_id,
        admin_id=current_user.id,
        admin_notes=payload.get('admin_notes')
    )
    return ok(
        {'settlement': settlement.to_dict(), 'new_dues': float(settlement.balance_after)},
        message='Settlement approved successfully'
    )


# ============== REJECT SETTLEMENT ==============
@settlements_bp.route('/<int:settlement_id>/reject', methods=['POST'])
@admin_required
def reject(settlement_id):
    payload = json_body()
    settlement = reject_settlement(
        settlement_id,
        reason=payload.get('reason') or payload.get('rejection_reason'),
        admin_id=current_user.id
    )
    return ok(settlement.to_dict(), message='Settlement rejected')


# ============== VENDOR BALANCES ==============
@settlements_bp.route('/vendors')
@admin_required
def vendor_balances():
    rows, summary, pagination = get_vendor_balances(
        filter_due=flag_arg('filter_due') or flag_arg('filterDue'),
        search=request.args.get('search'),
        **page_args()
    )
    return ok(rows, summary=summary, pagination=pagination)


# ============== VENDOR LEDGER ==============
@settlements_bp.route('/vendors/<int:vendor_id>/ledger')
@admin_required
def vendor_ledger(vendor_id):
    vendor, events, pagination = get_vendor_ledger(
        vendor_id,
        event_type=request.args.get('type'),
        **page_args()
    )
    return ok([e.to_dict() for e in events], vendor=vendor, pagination=pagination)


# ============== RECALCULATE BALANCES ==============
@settlements_bp.route('/vendors/<int:vendor_id>/recalculate', methods=['POST'])
@admin_required
def recalculate(vendor_id):
    result = recalculate_balances(vendor_id)
    message = 'Balances corrected' if result['was_corrected'] else 'Balances verified - no correction needed'
    return ok(result, message=message)


# ============== DASHBOARD ==============
@settlements_bp.route('/dashboard')
@admin_required
def dashboard():
    return ok(get_dashboard())
