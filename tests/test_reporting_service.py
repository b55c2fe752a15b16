from datetime import datetime, timedelta

import pytest

from app.services.credit_limit_service import block_vendor
from app.services.exceptions import NotFoundError
from app.services.ledger_service import record_cash_collection
from app.services.reporting_service import get_dashboard, get_vendor_balances, get_vendor_ledger
from app.services.settlement_service import submit_settlement, approve_settlement
from app.services.withdrawal_service import request_withdrawal


@pytest.fixture
def marketplace(make_vendor, bank_details):
    sharma = make_vendor('Sharma Home Services', phone='9876543210')
    gupta = make_vendor('Gupta Repairs', business_name='Gupta AC & Fridge')
    idle = make_vendor('Idle Cleaners')

    record_cash_collection(sharma.id, 'BK-1', 8000, vendor_earning=1500)
    record_cash_collection(gupta.id, 'BK-2', 3000, vendor_earning=600)

    settled = submit_settlement(sharma.id, 2000, 'upi', 'UPI-1')
    approve_settlement(settled.id)
    submit_settlement(gupta.id, 1000, 'cash', 'RCPT-1')
    request_withdrawal(sharma.id, 700, bank_details)
    block_vendor(idle.id, reason='KYC pending')

    return sharma, gupta, idle


def test_dashboard_totals(marketplace):
    dashboard = get_dashboard()

    assert dashboard['total_due_to_admin'] == 9000.0
    assert dashboard['vendors_with_due'] == 2
    assert dashboard['blocked_vendors'] == 1
    assert dashboard['pending_settlements'] == {'amount': 1000.0, 'count': 1}
    assert dashboard['pending_withdrawals'] == {'amount': 700.0, 'count': 1}
    assert dashboard['today_cash_collected'] == {'amount': 11000.0, 'count': 2}
    assert dashboard['weekly_settlements'] == {'amount': 2000.0, 'count': 1}


def test_dashboard_week_window(marketplace):
    dashboard = get_dashboard(now=datetime.utcnow() + timedelta(days=10))

    assert dashboard['weekly_settlements'] == {'amount': 0.0, 'count': 0}
    assert dashboard['today_cash_collected']['count'] == 0


def test_vendor_balances_sorted_by_due(marketplace):
    rows, summary, pagination = get_vendor_balances()

    assert [r['name'] for r in rows] == ['Sharma Home Services', 'Gupta Repairs', 'Idle Cleaners']
    assert rows[0]['due_balance'] == 6000.0
    assert rows[0]['limit_ratio'] == 0.6
    assert summary == {'total_due_to_admin': 9000.0, 'vendors_with_due': 2}
    assert pagination['total'] == 3


def test_vendor_balances_filters(marketplace):
    with_due, _, _ = get_vendor_balances(filter_due=True)
    searched, _, _ = get_vendor_balances(search='fridge')

    assert [r['name'] for r in with_due] == ['Sharma Home Services', 'Gupta Repairs']
    assert [r['name'] for r in searched] == ['Gupta Repairs']


def test_vendor_ledger(marketplace):
    sharma = marketplace[0]

    header, events, pagination = get_vendor_ledger(sharma.id)
    _, credits, _ = get_vendor_ledger(sharma.id, event_type='credit')

    assert header['name'] == 'Sharma Home Services'
    assert header['due_balance'] == 6000.0
    assert len(events) == 2
    assert [e.amount for e in credits] == [1500]
    assert pagination['total'] == 2


def test_vendor_ledger_unknown_vendor(app_ctx):
    with pytest.raises(NotFoundError):
        get_vendor_ledger(404)
