"""Flask CLI commands for bootstrapping accounts."""

import click

from app.extensions import db
from app.models import User, UserRole
from app.services.ledger_service import create_vendor


def _create_user(name, email, password, role, vendor_id=None):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise click.ClickException(f"User {email} already exists")

    user = User(name=name, email=email, role=role, vendor_id=vendor_id)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def register_commands(app):

    @app.cli.command('create-admin')
    @click.option('--name', default='Platform Admin')
    @click.option('--email', required=True)
    @click.password_option()
    def create_admin(name, email, password):
        """Create an admin who can decide settlements and withdrawals."""
        user = _create_user(name, email, password, UserRole.ADMIN.value)
        click.echo(f"Admin created: {user.email}")

    @app.cli.command('create-vendor')
    @click.option('--name', required=True)
    @click.option('--business-name', default=None)
    @click.option('--phone', default=None)
    @click.option('--email', required=True)
    @click.option('--cash-limit', type=float, default=None)
    @click.password_option()
    def create_vendor_account(name, business_name, phone, email, cash_limit, password):
        """Create a vendor, its wallet and a vendor login."""
        vendor = create_vendor(name, business_name=business_name, phone=phone,
                               email=email, cash_limit=cash_limit)
        user = _create_user(name, email, password, UserRole.VENDOR.value, vendor_id=vendor.id)
        click.echo(f"Vendor {vendor.id} created with login {user.email}")
