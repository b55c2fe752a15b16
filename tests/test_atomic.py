from decimal import Decimal

import pytest
from sqlalchemy import text

from app.services.atomic import run_atomic, load_wallet_for_update, load_for_update
from app.services.exceptions import (
    LedgerError, NotFoundError, ValidationError, ConcurrencyConflictError
)
from app.services.ledger_service import get_wallet, wallet_earnings
from app.models import Settlement


def bump_version(db, wallet):
    """Simulate another writer committing between our read and our write."""
    db.session.execute(
        text("UPDATE vendor_wallets SET version = version + 1 WHERE id = :id"),
        {'id': wallet.id}
    )


def test_commits_result(db, vendor):
    def work():
        wallet = load_wallet_for_update(vendor.id)
        wallet.wallet_earnings += Decimal('25')
        return 'done'

    assert run_atomic(work, 'Add earnings') == 'done'
    assert wallet_earnings(vendor.id) == Decimal('25')


def test_stale_write_is_retried(db, vendor):
    attempts = []

    def work():
        wallet = load_wallet_for_update(vendor.id)
        if not attempts:
            bump_version(db, wallet)
        attempts.append(wallet.version)
        wallet.wallet_earnings += Decimal('10')
        return wallet

    run_atomic(work, 'Add earnings')

    assert len(attempts) == 2
    assert wallet_earnings(vendor.id) == Decimal('10')


def test_persistent_conflict_raises(db, vendor):
    attempts = []

    def work():
        wallet = load_wallet_for_update(vendor.id)
        bump_version(db, wallet)
        attempts.append(1)
        wallet.wallet_earnings += Decimal('10')

    with pytest.raises(ConcurrencyConflictError) as excinfo:
        run_atomic(work, 'Add earnings', retries=2)

    assert len(attempts) == 2
    assert excinfo.value.details == {'attempts': 2}
    assert wallet_earnings(vendor.id) == Decimal('0')


def test_ledger_error_rolls_back(db, vendor):
    def work():
        wallet = load_wallet_for_update(vendor.id)
        wallet.wallet_earnings += Decimal('99')
        db.session.flush()
        raise ValidationError('bad input')

    with pytest.raises(ValidationError):
        run_atomic(work, 'Broken unit')

    assert wallet_earnings(vendor.id) == Decimal('0')


def test_database_errors_are_wrapped(db, vendor):
    def work():
        db.session.execute(text("INSERT INTO no_such_table VALUES (1)"))

    with pytest.raises(LedgerError) as excinfo:
        run_atomic(work, 'Broken insert')

    assert 'Broken insert failed' in excinfo.value.message
    assert get_wallet(vendor.id).due_balance == Decimal('0')


def test_locked_loaders_raise_not_found(app_ctx):
    with pytest.raises(NotFoundError):
        load_wallet_for_update(404)
    with pytest.raises(NotFoundError) as excinfo:
        load_for_update(Settlement, 404)

    assert excinfo.value.message == 'Settlement 404 not found'
