"""
NOTIFICATION SERVICE
====================

Best-effort vendor notifications after a ledger decision has committed.
Delivery (push, SMS, email) is owned by another service, plugged in
through the LEDGER_NOTIFIER config value. A failing notifier is logged
and never undoes the decision that triggered it.
"""

import logging

from flask import current_app

logger = logging.getLogger(__name__)


def notify_vendor(vendor_id, title, message):
    """Hand a message to the configured notifier. Returns True if delivered."""
    notifier = current_app.config.get('LEDGER_NOTIFIER')
    if notifier is None:
        logger.debug("No notifier configured; vendor %s: %s", vendor_id, title)
        return False

    try:
        notifier(vendor_id, title, message)
    except Exception:
        logger.exception("Notification to vendor %s failed: %s", vendor_id, title)
        return False
    return True
