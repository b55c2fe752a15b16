from decimal import Decimal

import pytest

from app.models import DecisionStatus, VendorWallet, User, UserRole
from app.services.exceptions import InvalidStateError
from app.services.settlement_service import submit_settlement


@pytest.mark.parametrize('target', [DecisionStatus.APPROVED, DecisionStatus.REJECTED])
def test_pending_can_be_decided(target):
    assert DecisionStatus.transition('pending', target) is target
    assert target.is_terminal


@pytest.mark.parametrize('current', ['approved', 'rejected'])
@pytest.mark.parametrize('target', ['pending', 'approved', 'rejected'])
def test_decided_status_is_final(current, target):
    with pytest.raises(InvalidStateError) as excinfo:
        DecisionStatus.transition(current, target)

    assert excinfo.value.details == {'current_status': current}


def test_pending_cannot_stay_pending():
    assert not DecisionStatus.PENDING.can_transition_to(DecisionStatus.PENDING)
    assert not DecisionStatus.PENDING.is_terminal


def test_mark_approved_sets_decision_fields(vendor):
    settlement = submit_settlement(vendor.id, 100, 'upi', 'UPI-1')

    settlement.mark_approved(admin_id=7, admin_notes='ok')

    assert settlement.decision_status is DecisionStatus.APPROVED
    assert settlement.processed_by == 7
    assert settlement.decided_at is not None
    with pytest.raises(InvalidStateError):
        settlement.mark_rejected('too late')


def test_limit_ratio():
    wallet = VendorWallet(due_balance=Decimal('2500'), cash_limit=Decimal('10000'))

    assert wallet.limit_ratio == 0.25
    assert wallet.wallet_balance is wallet.wallet_earnings


def test_password_hashing():
    user = User(name='Asha', email='asha@ledger.test', role=UserRole.ADMIN.value)
    user.set_password('s3cret')

    assert user.password_hash != 's3cret'
    assert user.check_password('s3cret')
    assert not user.check_password('wrong')
    assert user.is_admin
