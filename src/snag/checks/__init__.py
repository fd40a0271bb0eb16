"""Policy checks for each git hook phase."""

from snag.checks.audit import audit_history
from snag.checks.checkout import check_checkout
from snag.checks.diff import check_diff
from snag.checks.msg import check_message
from snag.checks.prepare import prepare_message
from snag.checks.push import check_push
from snag.checks.rebase import check_rebase

__all__ = [
    "audit_history",
    "check_checkout",
    "check_diff",
    "check_message",
    "check_push",
    "check_rebase",
    "prepare_message",
]
