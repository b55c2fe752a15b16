import threading
from decimal import Decimal

import pytest

from app import create_app
from app.extensions import db
from app.models import WithdrawalRequest
from app.services.exceptions import (
    LedgerError, ValidationError, NotFoundError, InvalidStateError, InsufficientBalanceError
)
from app.services.ledger_service import create_vendor, record_cash_event, get_wallet, wallet_earnings
from app.services.withdrawal_service import (
    request_withdrawal, approve_withdrawal, reject_withdrawal,
    get_withdrawal, get_pending_withdrawals, get_vendor_withdrawals
)
from config import TestConfig


@pytest.fixture
def earning_vendor(vendor):
    record_cash_event(vendor.id, 500, 'credit', booking_id='BK-1')
    return vendor


# ============== REQUEST ==============

def test_request_does_not_hold_earnings(earning_vendor, bank_details):
    withdrawal = request_withdrawal(earning_vendor.id, 500, bank_details)

    assert withdrawal.status == 'pending'
    assert withdrawal.bank_details['account_number'] == '001122334455'
    assert wallet_earnings(earning_vendor.id) == Decimal('500')


def test_request_with_upi_only(earning_vendor):
    withdrawal = request_withdrawal(earning_vendor.id, 200, {'upi_id': 'ravi@okhdfc', 'nickname': 'x'})

    assert withdrawal.bank_details == {'upi_id': 'ravi@okhdfc'}


def test_request_above_earnings_is_rejected(earning_vendor, bank_details):
    with pytest.raises(InsufficientBalanceError) as excinfo:
        request_withdrawal(earning_vendor.id, 501, bank_details)

    assert excinfo.value.details['available'] == 500.0
    assert WithdrawalRequest.query.count() == 0


@pytest.mark.parametrize('amount, details', [
    (0, {'upi_id': 'ravi@okhdfc'}),
    (-10, {'upi_id': 'ravi@okhdfc'}),
    (100, {}),
    (100, {'bank_name': 'HDFC Bank'}),
    (100, 'account 001122'),
    (100, None),
])
def test_request_validation(earning_vendor, amount, details):
    with pytest.raises(ValidationError):
        request_withdrawal(earning_vendor.id, amount, details)


def test_request_for_unknown_vendor(app_ctx, bank_details):
    with pytest.raises(NotFoundError):
        request_withdrawal(404, 100, bank_details)


# ============== APPROVE ==============

def test_approve_debits_earnings(earning_vendor, admin_user, bank_details):
    withdrawal = request_withdrawal(earning_vendor.id, 500, bank_details)

    approved = approve_withdrawal(withdrawal.id, 'TXN1', admin_id=admin_user.id,
                                  admin_notes='Paid via IMPS')

    assert approved.status == 'approved'
    assert approved.transaction_reference == 'TXN1'
    assert approved.processed_by == admin_user.id
    assert approved.admin_notes == 'Paid via IMPS'

    wallet = get_wallet(earning_vendor.id)
    assert wallet.wallet_earnings == Decimal('0')
    assert wallet.total_withdrawn == Decimal('500')


def test_approve_twice_is_invalid_state(earning_vendor, bank_details):
    withdrawal = request_withdrawal(earning_vendor.id, 500, bank_details)
    approve_withdrawal(withdrawal.id, 'TXN1')

    with pytest.raises(InvalidStateError):
        approve_withdrawal(withdrawal.id, 'TXN1')

    assert wallet_earnings(earning_vendor.id) == Decimal('0')
    assert get_wallet(earning_vendor.id).total_withdrawn == Decimal('500')


def test_approve_requires_transaction_reference(earning_vendor, bank_details):
    withdrawal = request_withdrawal(earning_vendor.id, 500, bank_details)

    with pytest.raises(ValidationError):
        approve_withdrawal(withdrawal.id, '  ')

    assert get_withdrawal(withdrawal.id).status == 'pending'
    assert wallet_earnings(earning_vendor.id) == Decimal('500')


def test_second_approval_cannot_overdraw(earning_vendor, bank_details):
    first = request_withdrawal(earning_vendor.id, 400, bank_details)
    second = request_withdrawal(earning_vendor.id, 400, bank_details)

    approve_withdrawal(first.id, 'TXN-A')
    with pytest.raises(InsufficientBalanceError):
        approve_withdrawal(second.id, 'TXN-B')

    assert wallet_earnings(earning_vendor.id) == Decimal('100')
    assert get_withdrawal(second.id).status == 'pending'


def test_concurrent_approvals_pay_out_once(tmp_path, bank_details):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ledger.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'check_same_thread': False, 'timeout': 30}}

    app = create_app(FileConfig)
    with app.app_context():
        vendor = create_vendor('Sharma Home Services')
        record_cash_event(vendor.id, 500, 'credit', booking_id='BK-1')
        vendor_id = vendor.id
        request_ids = [request_withdrawal(vendor_id, 400, bank_details).id for _ in range(2)]
        db.session.remove()

    barrier = threading.Barrier(2)
    outcomes = {}

    def approve(request_id):
        with app.app_context():
            barrier.wait()
            try:
                approve_withdrawal(request_id, f'TXN-{request_id}')
                outcomes[request_id] = 'approved'
            except LedgerError as e:
                outcomes[request_id] = e.code
            finally:
                db.session.remove()

    threads = [threading.Thread(target=approve, args=(rid,)) for rid in request_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(outcomes) == sorted(request_ids)
    assert list(outcomes.values()).count('approved') == 1
    loser = next(code for code in outcomes.values() if code != 'approved')
    assert loser in ('insufficient_balance', 'concurrency_conflict')

    with app.app_context():
        assert wallet_earnings(vendor_id) == Decimal('100')
        assert get_wallet(vendor_id).total_withdrawn == Decimal('400')
        assert WithdrawalRequest.query.filter_by(status='approved').count() == 1
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_approval_rechecks_after_debit(earning_vendor, bank_details):
    withdrawal = request_withdrawal(earning_vendor.id, 300, bank_details)
    record_cash_event(earning_vendor.id, 250, 'debit', description='Damage claim')

    with pytest.raises(InsufficientBalanceError):
        approve_withdrawal(withdrawal.id, 'TXN1')

    assert wallet_earnings(earning_vendor.id) == Decimal('250')


def test_approve_unknown_withdrawal(app_ctx):
    with pytest.raises(NotFoundError):
        approve_withdrawal(999, 'TXN1')


# ============== REJECT ==============

def test_reject_requires_reason(earning_vendor, bank_details):
    withdrawal = request_withdrawal(earning_vendor.id, 100, bank_details)

    with pytest.raises(ValidationError):
        reject_withdrawal(withdrawal.id, None)


def test_reject_has_no_balance_effect(earning_vendor, bank_details, notifications):
    withdrawal = request_withdrawal(earning_vendor.id, 100, bank_details)

    rejected = reject_withdrawal(withdrawal.id, 'Bank account name mismatch')

    assert rejected.status == 'rejected'
    assert rejected.rejection_reason == 'Bank account name mismatch'
    assert wallet_earnings(earning_vendor.id) == Decimal('500')
    assert notifications[-1][1] == 'Withdrawal rejected'

    with pytest.raises(InvalidStateError):
        approve_withdrawal(withdrawal.id, 'TXN1')


# ============== QUERIES ==============

def test_pending_and_vendor_listings(earning_vendor, bank_details):
    first = request_withdrawal(earning_vendor.id, 100, bank_details)
    second = request_withdrawal(earning_vendor.id, 150, bank_details)
    approve_withdrawal(first.id, 'TXN1')

    pending, summary, _ = get_pending_withdrawals()
    history, pagination = get_vendor_withdrawals(earning_vendor.id)

    assert [w.id for w in pending] == [second.id]
    assert summary == {'total_pending_amount': 150.0, 'pending_count': 1}
    assert {w.id for w in history} == {first.id, second.id}
    assert pagination['total'] == 2
