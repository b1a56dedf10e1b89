"""
Grant condition evaluation.

A grant may carry a serialized restriction set (time window, weekdays, IP
allowlist, MFA). The evaluator parses it and checks every recognized
restriction against the request; all must pass. Anything that fails to
parse denies.
"""

from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from shared.logging import get_logger
from .models import ConditionSet, PermissionContext


# Sunday-indexed, matching the stored allowedDays vocabulary
DAY_NAMES = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)


def day_name(moment: datetime) -> str:
    """Lowercase weekday name for ``moment``."""
    # datetime.weekday() is Monday-indexed
    return DAY_NAMES[(moment.weekday() + 1) % 7]


def ip_in_allowlist(ip_address: str, allowlist) -> bool:
    """Check ``ip_address`` against literal entries and slash entries.

    Slash entries compare only the first three octets of the network part
    (a /24-style prefix check), whatever the stated prefix length is.
    """
    ip_octets = ip_address.split(".")[:3]
    for allowed in allowlist:
        if "/" in allowed:
            network = allowed.split("/", 1)[0]
            if network.split(".")[:3] == ip_octets:
                return True
        elif allowed == ip_address:
            return True
    return False


class ConditionEvaluator:
    """Evaluates grant restriction sets against a request context."""

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        ip_allowlist_fail_closed: bool = False,
    ):
        self.logger = get_logger("rbac.conditions")
        self.clock = clock or datetime.now
        self.ip_allowlist_fail_closed = ip_allowlist_fail_closed

    def evaluate(self, conditions: str, context: PermissionContext) -> bool:
        """Return True only if every restriction in ``conditions`` holds."""
        try:
            condition_set = ConditionSet.parse(conditions)
        except PydanticValidationError as e:
            self.logger.warning("Malformed grant conditions", error=str(e))
            return False

        now = self.clock()

        if condition_set.time_restricted and condition_set.allowed_hours:
            if not self._within_hours(condition_set, now):
                return False

        if condition_set.allowed_days is not None:
            if day_name(now) not in condition_set.allowed_days:
                return False

        if condition_set.ip_whitelist is not None:
            if not self._ip_allowed(condition_set, context):
                return False

        if condition_set.require_mfa and context.conditions.mfa_verified is not True:
            return False

        return True

    def _within_hours(self, condition_set: ConditionSet, now: datetime) -> bool:
        # Windows that wrap past midnight (22:00-06:00) never match
        start, end = condition_set.hours_window()
        current = now.hour * 100 + now.minute
        return start <= current <= end

    def _ip_allowed(self, condition_set: ConditionSet, context: PermissionContext) -> bool:
        ip_address = context.conditions.ip_address
        if not ip_address:
            return not self.ip_allowlist_fail_closed
        return ip_in_allowlist(ip_address, condition_set.ip_whitelist)
