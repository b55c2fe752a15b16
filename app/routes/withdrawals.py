"""
WITHDRAWAL ROUTES (Admin)
=========================
"""

from flask import Blueprint
from flask_login import current_user

from app.routes import json_body, page_args, ok
from app.services.authorization_service import admin_required
from app.services.withdrawal_service import (
    approve_withdrawal, reject_withdrawal, get_pending_withdrawals
)

withdrawals_bp = Blueprint('withdrawals', __name__, url_prefix='/admin/withdrawals')


# ============== PENDING WITHDRAWALS ==============
@withdrawals_bp.route('/pending')
@admin_required
def pending_withdrawals():
    withdrawals, summary, pagination = get_pending_withdrawals(**page_args())
    return ok(
        [w.to_dict() for w in withdrawals],
        summary=summary,
        pagination=pagination
    )


# ============== APPROVE WITHDRAWAL ==============
@withdrawals_bp.route('/<int:request_id>/approve', methods=['POST'])
@admin_required
def approve(request_id):
    payload = json_body()
    withdrawal = approve_withdrawal(
        request_id,
        transaction_reference=payload.get('transaction_reference') or payload.get('transactionReference'),
        admin_id=current_user.id,
        admin_notes=payload.get('admin_notes') or payload.get('notes')
    )
    return ok(withdrawal.to_dict(), message='Withdrawal approved')


# ============== REJECT WITHDRAWAL ==============
@withdrawals_bp.route('/<int:request_id>/reject', methods=['POST'])
@admin_required
def reject(request_id):
    payload = json_body()
    withdrawal = reject_withdrawal(
        request_id,
        reason=payload.get('reason'),
        admin_id=current_user.id
    )
    return ok(withdrawal.to_dict(), message='Withdrawal rejected')
