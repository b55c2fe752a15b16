"""
REPORTING SERVICE
=================

Read-only aggregates for the admin dashboard and vendor balance screens.

Nothing here writes, and no ledger decision reads from here: approvals
always go back to the locked wallet row.
"""

from datetime import datetime, timedelta

from app.extensions import db
from app.models import (
    Vendor, VendorWallet, CashEvent, Settlement, WithdrawalRequest,
    CashEventType, DecisionStatus
)
from app.services.ledger_service import get_vendor_events
from app.services.exceptions import NotFoundError
from app.services.pagination import paginate


def _amount_and_count(model, *criteria):
    total, count = db.session.query(
        db.func.coalesce(db.func.sum(model.amount), 0),
        db.func.count(model.id)
    ).filter(*criteria).one()
    return {'amount': float(total), 'count': count}


def get_dashboard(now=None):
    """Totals shown on the settlement dashboard."""
    now = now or datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = now - timedelta(days=7)

    total_due = db.session.query(
        db.func.coalesce(db.func.sum(VendorWallet.due_balance), 0)
    ).filter(VendorWallet.due_balance > 0).scalar()

    vendors_with_due = VendorWallet.query.filter(VendorWallet.due_balance > 0).count()
    blocked_vendors = VendorWallet.query.filter_by(is_blocked=True).count()

    return {
        'total_due_to_admin': float(total_due),
        'vendors_with_due': vendors_with_due,
        'blocked_vendors': blocked_vendors,
        'pending_settlements': _amount_and_count(
            Settlement, Settlement.status == DecisionStatus.PENDING.value
        ),
        'pending_withdrawals': _amount_and_count(
            WithdrawalRequest, WithdrawalRequest.status == DecisionStatus.PENDING.value
        ),
        'today_cash_collected': _amount_and_count(
            CashEvent,
            CashEvent.event_type == CashEventType.CASH_COLLECTED.value,
            CashEvent.created_at >= today
        ),
        'weekly_settlements': _amount_and_count(
            Settlement,
            Settlement.status == DecisionStatus.APPROVED.value,
            Settlement.decided_at >= week_start
        ),
    }


def get_vendor_balances(filter_due=False, search=None, page=1, per_page=None):
    """
    Per-vendor balance rows, highest due first.

    Returns: (rows, summary, pagination)
    """
    query = Vendor.query.join(VendorWallet).filter(Vendor.is_active.is_(True))

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Vendor.name.ilike(pattern),
            Vendor.business_name.ilike(pattern),
            Vendor.phone.ilike(pattern)
        ))

    if filter_due:
        query = query.filter(VendorWallet.due_balance > 0)

    vendors, pagination = paginate(
        query.order_by(VendorWallet.due_balance.desc(), Vendor.id.asc()),
        page, per_page
    )

    rows = []
    for vendor in vendors:
        row = vendor.wallet.to_dict()
        row.update({
            'name': vendor.name,
            'business_name': vendor.business_name,
            'phone': vendor.phone,
            'email': vendor.email,
        })
        rows.append(row)

    total_due = db.session.query(
        db.func.coalesce(db.func.sum(VendorWallet.due_balance), 0)
    ).filter(VendorWallet.due_balance > 0).scalar()

    summary = {
        'total_due_to_admin': float(total_due),
        'vendors_with_due': VendorWallet.query.filter(VendorWallet.due_balance > 0).count(),
    }
    return rows, summary, pagination


def get_vendor_ledger(vendor_id, event_type=None, page=1, per_page=None):
    """A vendor's balance header plus its cash events."""
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor or not vendor.wallet:
        raise NotFoundError(f"Vendor {vendor_id} not found")

    events, pagination = get_vendor_events(vendor_id, event_type, page, per_page)

    header = vendor.wallet.to_dict()
    header.update({'name': vendor.name, 'business_name': vendor.business_name, 'phone': vendor.phone})
    return header, events, pagination
