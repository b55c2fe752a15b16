"""
ATOMIC UNITS OF WORK
====================

CRITICAL BUSINESS RULES:
1. A balance change and the record that causes it commit together or not at all
2. Balance rows are read with SELECT ... FOR UPDATE inside the unit of work
3. Every balance/decision row carries a version counter; a stale write
   raises StaleDataError and the whole unit is retried from scratch
4. Only run_atomic commits; units of work never call commit themselves
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from app.extensions import db
from app.models import Vendor, VendorWallet
from app.services.exceptions import (
    LedgerError, NotFoundError, ConcurrencyConflictError
)

logger = logging.getLogger(__name__)


def run_atomic(work, description, retries=None):
    """
    Run `work()` as one transaction and return its result.

    On an optimistic-lock conflict the session is rolled back and `work`
    runs again against fresh rows, up to LEDGER_CONFLICT_RETRIES times.
    """
    attempts = retries or current_app.config.get('LEDGER_CONFLICT_RETRIES', 3)

    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.session.commit()
            return result

        except StaleDataError:
            db.session.rollback()
            logger.warning(
                "%s: concurrent update detected (attempt %d/%d)",
                description, attempt, attempts
            )
        except LedgerError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerError(f"{description} failed: {str(e)}") from e
        except Exception:
            db.session.rollback()
            raise

    raise ConcurrencyConflictError(
        f"{description} failed: balance changed concurrently, please retry",
        attempts=attempts
    )


# ============================================================
# LOCKED LOADERS
# ============================================================

def load_for_update(model, record_id, label=None):
    """Load a row by primary key with a row lock, refreshing any cached copy."""
    stmt = (
        db.select(model)
        .filter_by(id=record_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    record = db.session.execute(stmt).scalar_one_or_none()
    if record is None:
        raise NotFoundError(f"{label or model.__name__} {record_id} not found")
    return record


def load_wallet_for_update(vendor_id):
    """Lock and return the balance row of a vendor."""
    stmt = (
        db.select(VendorWallet)
        .filter_by(vendor_id=vendor_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    wallet = db.session.execute(stmt).scalar_one_or_none()
    if wallet is None:
        if db.session.get(Vendor, vendor_id) is None:
            raise NotFoundError(f"Vendor {vendor_id} not found")
        raise NotFoundError(f"Vendor {vendor_id} has no wallet")
    return wallet
