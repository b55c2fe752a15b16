"""
CENTRALIZED AUTHORIZATION SERVICE
==================================

All permission checks live here.
Routes call these functions or use the decorators below.

NEVER bypass these checks!
"""

from functools import wraps

from flask_login import login_required, current_user

from app.models import UserRole
from app.services.exceptions import AuthorizationError


# ============================================================
# ROLE CHECKS
# ============================================================

def is_admin(user):
    """Check if user is a ledger administrator"""
    return bool(user) and user.role == UserRole.ADMIN.value


def is_vendor_user(user):
    """Check if user is a vendor account linked to a vendor record"""
    return bool(user) and user.role == UserRole.VENDOR.value and user.vendor_id is not None


# ============================================================
# DECISION AUTHORIZATION
# ============================================================

def can_decide_claims(user):
    """
    Check if user can approve/reject settlements and withdrawals,
    change cash limits or block vendors.

    Requirements:
    - User must be an admin
    """
    if not is_admin(user):
        return False, "Only admins can manage vendor settlements"
    return True, None


# ============================================================
# VENDOR SELF-SERVICE AUTHORIZATION
# ============================================================

def can_act_for_vendor(user, vendor_id):
    """
    Check if user can submit claims or read balances for a vendor.

    Requirements:
    - Admins can act for any vendor
    - Vendor users only for their own vendor record
    """
    if is_admin(user):
        return True, None

    if not is_vendor_user(user):
        return False, "Vendor account required"

    if user.vendor_id != vendor_id:
        return False, "You can only access your own wallet"

    return True, None


# ============================================================
# HELPER FUNCTIONS: REQUIRE AUTHORIZATION
# ============================================================

def require_authorization(check_func, *args, error_class=AuthorizationError):
    """
    Wrapper to raise exception if authorization fails.

    Usage:
        require_authorization(can_act_for_vendor, current_user, vendor_id)
    """
    allowed, reason = check_func(*args)
    if not allowed:
        raise error_class(reason)
    return True


def admin_required(view):
    """Allow only admins. Raises AuthorizationError for other logged-in users."""
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        require_authorization(can_decide_claims, current_user)
        return view(*args, **kwargs)

    return wrapped


def vendor_required(view):
    """Allow only vendor accounts linked to a vendor record."""
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not is_vendor_user(current_user):
            raise AuthorizationError("Vendor account required")
        return view(*args, **kwargs)

    return wrapped
