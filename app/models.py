from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import event
from sqlalchemy.orm import declared_attr
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from app.extensions import db


MONEY = db.Numeric(12, 2)
ZERO = Decimal('0.00')


# ============================================================
# ENUMS
# ============================================================
class UserRole(Enum):
    ADMIN = 'admin'
    VENDOR = 'vendor'


class CashEventType(Enum):
    CASH_COLLECTED = 'cash_collected'
    CREDIT = 'credit'
    DEBIT = 'debit'
    PAYMENT = 'payment'
    REFUND = 'refund'


class PaymentMethod(Enum):
    UPI = 'upi'
    BANK_TRANSFER = 'bank_transfer'
    CASH = 'cash'
    OTHER = 'other'


class DecisionStatus(Enum):
    """
    Lifecycle of a vendor-initiated claim (Settlement or WithdrawalRequest).

    PENDING is the only non-terminal state. A claim is decided exactly once.
    """
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

    @property
    def is_terminal(self):
        return self is not DecisionStatus.PENDING

    def can_transition_to(self, target):
        return target in _DECISION_TRANSITIONS[self]

    @classmethod
    def transition(cls, current, target):
        """
        Validate a move from `current` to `target` (members or raw values).

        Raises InvalidStateError for anything outside the transition table.
        """
        from app.services.exceptions import InvalidStateError

        current, target = cls(current), cls(target)
        if not current.can_transition_to(target):
            raise InvalidStateError(
                f"Cannot move from '{current.value}' to '{target.value}'",
                current_status=current.value,
            )
        return target


_DECISION_TRANSITIONS = {
    DecisionStatus.PENDING: frozenset({DecisionStatus.APPROVED, DecisionStatus.REJECTED}),
    DecisionStatus.APPROVED: frozenset(),
    DecisionStatus.REJECTED: frozenset(),
}


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, db.Model):
    """
    An authenticated operator of the ledger.

    Admins decide settlements and withdrawals; vendor users act on
    their own vendor record only.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=UserRole.VENDOR.value)
    vendor_id = db.Column(db.Integer, db.ForeignKey('vendors.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    vendor = db.relationship('Vendor', backref=db.backref('users', lazy='dynamic'))

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against stored hash."""
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'vendor_id': self.vendor_id,
        }

    def __repr__(self):
        return f'<User {self.email} role={self.role}>'


# ============================================================
# VENDOR MODEL
# ============================================================
class Vendor(db.Model):
    """
    A service vendor that collects cash on the platform's behalf.

    Each vendor has exactly one VendorWallet holding its balances.
    """
    __tablename__ = 'vendors'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    business_name = db.Column(db.String(150))
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # One-to-One relationship with VendorWallet
    wallet = db.relationship('VendorWallet', backref='vendor', uselist=False,
                             cascade='all, delete-orphan')

    cash_events = db.relationship('CashEvent', backref='vendor', lazy='dynamic')
    settlements = db.relationship('Settlement', backref='vendor', lazy='dynamic')
    withdrawals = db.relationship('WithdrawalRequest', backref='vendor', lazy='dynamic')

    def __repr__(self):
        return f'<Vendor {self.name}>'


# ============================================================
# VENDOR WALLET MODEL
# ============================================================
class VendorWallet(db.Model):
    """
    Cached balance aggregate for a vendor.

    CRITICAL: due_balance and wallet_earnings are ONLY changed by the
    ledger services, in the same transaction as the CashEvent or decision
    that causes the change. `version` is bumped on every write so a
    concurrent writer holding a stale copy fails instead of overwriting.
    """
    __tablename__ = 'vendor_wallets'

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey('vendors.id'), unique=True, nullable=False)

    # Owed TO the platform from cash collection
    due_balance = db.Column(MONEY, default=ZERO, nullable=False)
    # Owed BY the platform, available for withdrawal
    wallet_earnings = db.Column(MONEY, default=ZERO, nullable=False)

    total_cash_collected = db.Column(MONEY, default=ZERO, nullable=False)
    total_settled = db.Column(MONEY, default=ZERO, nullable=False)
    total_withdrawn = db.Column(MONEY, default=ZERO, nullable=False)

    # Credit ceiling
    cash_limit = db.Column(MONEY, nullable=False)
    is_blocked = db.Column(db.Boolean, default=False, nullable=False)
    blocked_at = db.Column(db.DateTime, nullable=True)
    block_reason = db.Column(db.String(255), nullable=True)
    last_evaluated_at = db.Column(db.DateTime, nullable=True)

    last_recalculated_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    @property
    def wallet_balance(self):
        """Reporting alias for wallet_earnings."""
        return self.wallet_earnings

    @property
    def limit_ratio(self):
        """Due balance as a fraction of the cash limit (UI progress bars)."""
        if not self.cash_limit:
            return 0.0
        return float(self.due_balance / self.cash_limit)

    def to_dict(self):
        return {
            'vendor_id': self.vendor_id,
            'due_balance': float(self.due_balance),
            'wallet_earnings': float(self.wallet_earnings),
            'wallet_balance': float(self.wallet_balance),
            'total_cash_collected': float(self.total_cash_collected),
            'total_settled': float(self.total_settled),
            'total_withdrawn': float(self.total_withdrawn),
            'cash_limit': float(self.cash_limit),
            'limit_ratio': round(self.limit_ratio, 4),
            'is_blocked': self.is_blocked,
            'blocked_at': _iso(self.blocked_at),
            'block_reason': self.block_reason,
        }

    def __repr__(self):
        return f'<VendorWallet vendor={self.vendor_id} due={self.due_balance} earnings={self.wallet_earnings}>'


# ============================================================
# CASH EVENT MODEL (LEDGER)
# ============================================================
class CashEvent(db.Model):
    """
    CRITICAL: Append-only record of every cash fact about a vendor.

    - 'cash_collected': vendor collected cash for a booking (due increases)
    - 'credit' / 'refund': wallet earnings credited
    - 'debit': wallet earnings debited
    - 'payment': recorded for audit, no balance effect

    Rows are never updated or deleted. Corrections are new offsetting events.
    """
    __tablename__ = 'cash_events'

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey('vendors.id'), nullable=False, index=True)
    booking_id = db.Column(db.String(64), nullable=True, index=True)

    event_type = db.Column(db.String(30), nullable=False)
    amount = db.Column(MONEY, nullable=False)  # Always > 0, direction comes from event_type

    description = db.Column(db.String(255), nullable=True)
    idempotency_key = db.Column(db.String(100), unique=True, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'vendor_id': self.vendor_id,
            'booking_id': self.booking_id,
            'type': self.event_type,
            'amount': float(self.amount),
            'description': self.description,
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<CashEvent {self.event_type} amount={self.amount}>'


@event.listens_for(CashEvent, 'before_update')
def _cash_event_is_immutable(mapper, connection, target):
    raise RuntimeError(f'CashEvent {target.id} is immutable')


@event.listens_for(CashEvent, 'before_delete')
def _cash_event_is_permanent(mapper, connection, target):
    raise RuntimeError(f'CashEvent {target.id} cannot be deleted')


# ============================================================
# DECISION RECORD BASE
# ============================================================
class DecisionMixin:
    """
    Shared lifecycle for records decided once by an administrator.

    Status moves only through DecisionStatus.transition, so a decided
    record can never be re-opened or decided twice.
    """
    status = db.Column(db.String(20), default=DecisionStatus.PENDING.value, nullable=False, index=True)
    rejection_reason = db.Column(db.String(500), nullable=True)
    admin_notes = db.Column(db.String(500), nullable=True)
    decided_at = db.Column(db.DateTime, nullable=True)

    @declared_attr
    def processed_by(cls):
        return db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    @property
    def decision_status(self):
        return DecisionStatus(self.status)

    @property
    def is_pending(self):
        return self.decision_status is DecisionStatus.PENDING

    def _decide(self, target, admin_id):
        self.status = DecisionStatus.transition(self.status, target).value
        self.processed_by = admin_id
        self.decided_at = datetime.utcnow()

    def mark_approved(self, admin_id=None, admin_notes=None):
        self._decide(DecisionStatus.APPROVED, admin_id)
        self.admin_notes = admin_notes

    def mark_rejected(self, reason, admin_id=None):
        self._decide(DecisionStatus.REJECTED, admin_id)
        self.rejection_reason = reason


# ============================================================
# SETTLEMENT MODEL
# ============================================================
class Settlement(DecisionMixin, db.Model):
    """
    A vendor's claim of having paid cash dues to the platform.

    Lifecycle:
    1. Submitted by the vendor with status='pending'
    2. Admin approves (due balance reduced) or rejects (reason required)
    3. Immutable afterwards
    """
    __tablename__ = 'settlements'

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey('vendors.id'), nullable=False, index=True)

    amount = db.Column(MONEY, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    payment_reference = db.Column(db.String(100), nullable=False)
    payment_proof = db.Column(db.String(500), nullable=True)
    vendor_notes = db.Column(db.String(500), nullable=True)

    # Filled on approval: how much of `amount` reduced the due balance
    applied_amount = db.Column(MONEY, nullable=True)
    balance_after = db.Column(MONEY, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    def to_dict(self):
        return {
            'id': self.id,
            'vendor_id': self.vendor_id,
            'vendor_name': self.vendor.name if self.vendor else None,
            'amount': float(self.amount),
            'payment_method': self.payment_method,
            'payment_reference': self.payment_reference,
            'payment_proof': self.payment_proof,
            'vendor_notes': self.vendor_notes,
            'status': self.status,
            'rejection_reason': self.rejection_reason,
            'admin_notes': self.admin_notes,
            'applied_amount': _money(self.applied_amount),
            'balance_after': _money(self.balance_after),
            'processed_by': self.processed_by,
            'created_at': _iso(self.created_at),
            'decided_at': _iso(self.decided_at),
        }

    def __repr__(self):
        return f'<Settlement ₹{self.amount} vendor={self.vendor_id} status={self.status}>'


# ============================================================
# WITHDRAWAL REQUEST MODEL
# ============================================================
class WithdrawalRequest(DecisionMixin, db.Model):
    """
    A vendor's request to cash out wallet earnings to a bank account.

    Earnings are only debited when an admin approves with a
    transaction reference; the balance is re-checked at that moment.
    """
    __tablename__ = 'withdrawal_requests'

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey('vendors.id'), nullable=False, index=True)

    amount = db.Column(MONEY, nullable=False)
    bank_details = db.Column(db.JSON, nullable=False, default=dict)
    transaction_reference = db.Column(db.String(100), nullable=True)

    request_date = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    def to_dict(self):
        return {
            'id': self.id,
            'vendor_id': self.vendor_id,
            'vendor_name': self.vendor.name if self.vendor else None,
            'amount': float(self.amount),
            'bank_details': self.bank_details,
            'status': self.status,
            'transaction_reference': self.transaction_reference,
            'admin_notes': self.admin_notes,
            'rejection_reason': self.rejection_reason,
            'processed_by': self.processed_by,
            'request_date': _iso(self.request_date),
            'decided_at': _iso(self.decided_at),
        }

    def __repr__(self):
        return f'<WithdrawalRequest ₹{self.amount} vendor={self.vendor_id} status={self.status}>'


# ============================================================
# SERIALIZATION HELPERS
# ============================================================
def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None
