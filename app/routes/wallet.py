"""
VENDOR WALLET ROUTES
====================

Self-service endpoints for vendor accounts.
Every operation acts on the logged-in vendor's own record.
"""

from flask import Blueprint, request
from flask_login import current_user

from app.routes import json_body, page_args, ok
from app.services.authorization_service import vendor_required
from app.services.exceptions import AuthorizationError
from app.services.ledger_service import (
    get_wallet_summary, get_vendor_events, record_cash_collection
)
from app.services.settlement_service import submit_settlement, get_settlement_history
from app.services.withdrawal_service import request_withdrawal, get_vendor_withdrawals

wallet_bp = Blueprint('wallet', __name__, url_prefix='/vendor')


# ============== VIEW WALLET ==============
@wallet_bp.route('/wallet')
@vendor_required
def view_wallet():
    return ok(get_wallet_summary(current_user.vendor_id))


# ============== TRANSACTION HISTORY ==============
@wallet_bp.route('/wallet/transactions')
@vendor_required
def transactions():
    events, pagination = get_vendor_events(
        current_user.vendor_id,
        event_type=request.args.get('type'),
        **page_args()
    )
    return ok([e.to_dict() for e in events], pagination=pagination)


# ============== RECORD CASH COLLECTION ==============
@wallet_bp.route('/wallet/cash-collection', methods=['POST'])
@vendor_required
def cash_collection():
    payload = json_body()
    # Earnings come from the platform's own bill, never from the vendor
    if payload.get('vendor_earning') is not None:
        raise AuthorizationError(
            "Vendors cannot credit their own earnings",
            field='vendor_earning'
        )

    collected, _ = record_cash_collection(
        current_user.vendor_id,
        booking_id=payload.get('booking_id'),
        amount=payload.get('amount'),
        created_by=current_user.id
    )
    return ok(
        {
            'cash_collected': collected.to_dict(),
            'wallet': get_wallet_summary(current_user.vendor_id),
        },
        message='Cash collection recorded',
        status=201
    )


# ============== REQUEST SETTLEMENT ==============
@wallet_bp.route('/wallet/settlement', methods=['POST'])
@vendor_required
def settlement():
    payload = json_body()
    created = submit_settlement(
        current_user.vendor_id,
        amount=payload.get('amount'),
        payment_method=payload.get('payment_method'),
        payment_reference=payload.get('payment_reference'),
        payment_proof=payload.get('payment_proof'),
        vendor_notes=payload.get('notes') or payload.get('vendor_notes')
    )
    return ok(created.to_dict(), message='Settlement request submitted', status=201)


# ============== SETTLEMENT HISTORY ==============
@wallet_bp.route('/wallet/settlements')
@vendor_required
def settlements():
    items, pagination = get_settlement_history(
        status=request.args.get('status'),
        vendor_id=current_user.vendor_id,
        **page_args()
    )
    return ok([s.to_dict() for s in items], pagination=pagination)


# ============== REQUEST WITHDRAWAL ==============
@wallet_bp.route('/withdraw', methods=['POST'])
@vendor_required
def withdraw():
    payload = json_body()
    withdrawal = request_withdrawal(
        current_user.vendor_id,
        amount=payload.get('amount'),
        bank_details=payload.get('bank_details')
    )
    return ok(withdrawal.to_dict(), message='Withdrawal request submitted', status=201)


# ============== WITHDRAWAL HISTORY ==============
@wallet_bp.route('/wallet/withdrawals')
@vendor_required
def withdrawals():
    items, pagination = get_vendor_withdrawals(current_user.vendor_id, **page_args())
    return ok([w.to_dict() for w in items], pagination=pagination)
