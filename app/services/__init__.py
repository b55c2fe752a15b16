# This makes 'services' a Python package
"""
Services Package
================

Business logic layer for the vendor cash ledger.

All balance and authorization operations are handled here.
Routes should call these services, not manipulate models directly.
"""

from app.services.exceptions import (
    LedgerError,
    ValidationError,
    NotFoundError,
    AuthorizationError,
    InvalidStateError,
    InsufficientBalanceError,
    ConcurrencyConflictError,
    DuplicateEventError
)

from app.services.ledger_service import (
    create_vendor,
    record_cash_event,
    record_cash_collection,
    due_balance,
    wallet_earnings,
    get_wallet_summary,
    recalculate_balances,
    get_vendor_events
)

from app.services.credit_limit_service import (
    evaluate_credit_limit,
    block_vendor,
    unblock_vendor,
    update_cash_limit,
    is_vendor_blocked
)

from app.services.settlement_service import (
    submit_settlement,
    approve_settlement,
    reject_settlement,
    get_pending_settlements,
    get_settlement_history
)

from app.services.withdrawal_service import (
    request_withdrawal,
    approve_withdrawal,
    reject_withdrawal,
    get_pending_withdrawals,
    get_vendor_withdrawals
)

from app.services.reporting_service import (
    get_dashboard,
    get_vendor_balances,
    get_vendor_ledger
)

from app.services.authorization_service import (
    can_decide_claims,
    can_act_for_vendor,
    require_authorization,
    admin_required,
    vendor_required
)
