from decimal import Decimal

from app.models import User, UserRole
from app.services.ledger_service import get_wallet


def test_create_admin(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['create-admin', '--email', 'Ops@Ledger.test', '--password', 'pw123'])

    assert result.exit_code == 0
    assert 'ops@ledger.test' in result.output
    with app.app_context():
        user = User.query.filter_by(email='ops@ledger.test').one()
        assert user.role == UserRole.ADMIN.value
        assert user.check_password('pw123')


def test_create_admin_twice_fails(app):
    runner = app.test_cli_runner()
    args = ['create-admin', '--email', 'ops@ledger.test', '--password', 'pw123']

    runner.invoke(args=args)
    result = runner.invoke(args=args)

    assert result.exit_code == 1
    assert 'already exists' in result.output


def test_create_vendor_account(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        'create-vendor', '--name', 'Sharma Home Services', '--email', 'sharma@ledger.test',
        '--cash-limit', '5000', '--password', 'pw123'
    ])

    assert result.exit_code == 0
    with app.app_context():
        user = User.query.filter_by(email='sharma@ledger.test').one()
        assert user.vendor.name == 'Sharma Home Services'
        assert get_wallet(user.vendor_id).cash_limit == Decimal('5000')
