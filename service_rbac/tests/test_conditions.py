"""
Unit tests for grant condition evaluation.
"""

import pytest
from datetime import datetime

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_rbac.app.rules.conditions import ConditionEvaluator, day_name, ip_in_allowlist
from service_rbac.app.rules.models import PermissionContext, RequestConditions
from shared.test_helpers import RbacDataFactory, fixed_clock

conditions = RbacDataFactory.conditions


def make_context(ip_address=None, mfa_verified=None) -> PermissionContext:
    return PermissionContext(
        user_id="user-1",
        organization_id="org-1",
        action="docs:read",
        resource_type="docs",
        conditions=RequestConditions(ip_address=ip_address, mfa_verified=mfa_verified)
    )


class TestConditionEvaluator:
    """Test cases for ConditionEvaluator."""

    @pytest.fixture
    def evaluator(self):
        """Evaluator pinned to Wednesday 10:30."""
        return ConditionEvaluator(clock=fixed_clock())

    @pytest.mark.parametrize("payload", [
        "not json",
        "{",
        "null",
        "[]",
        '"requireMFA"',
        '{"allowedDays": "wednesday"}',
        '{"ipWhitelist": "10.0.0.1"}',
        '{"timeRestricted": true, "allowedHours": "9am-5pm"}',
        '{"timeRestricted": true, "allowedHours": "25:00-26:00"}',
    ])
    def test_malformed_payload_denies(self, evaluator, payload):
        """Test malformed restriction sets are denied."""
        assert evaluator.evaluate(payload, make_context(mfa_verified=True)) is False

    def test_empty_restriction_set_allows(self, evaluator):
        """Test an empty object imposes no constraint."""
        assert evaluator.evaluate("{}", make_context()) is True

    def test_unrecognized_keys_ignored(self, evaluator):
        """Test unknown restriction keys impose no constraint."""
        assert evaluator.evaluate(conditions(department="finance"), make_context()) is True

    def test_time_window_inside(self, evaluator):
        """Test current time within window passes."""
        payload = conditions(timeRestricted=True, allowedHours="09:00-17:00")
        assert evaluator.evaluate(payload, make_context()) is True

    def test_time_window_outside(self, evaluator):
        """Test current time outside window fails."""
        payload = conditions(timeRestricted=True, allowedHours="11:00-17:00")
        assert evaluator.evaluate(payload, make_context()) is False

    def test_time_window_bounds_inclusive(self, evaluator):
        """Test both window bounds are inclusive."""
        assert evaluator.evaluate(
            conditions(timeRestricted=True, allowedHours="10:30-11:00"), make_context()
        ) is True
        assert evaluator.evaluate(
            conditions(timeRestricted=True, allowedHours="09:00-10:30"), make_context()
        ) is True

    def test_time_window_across_midnight_never_matches(self):
        """Test windows wrapping midnight are not supported."""
        late = ConditionEvaluator(clock=fixed_clock(datetime(2024, 1, 3, 23, 15)))
        payload = conditions(timeRestricted=True, allowedHours="22:00-06:00")
        assert late.evaluate(payload, make_context()) is False

    def test_time_window_requires_flag(self, evaluator):
        """Test allowedHours without timeRestricted is not enforced."""
        payload = conditions(allowedHours="11:00-12:00")
        assert evaluator.evaluate(payload, make_context()) is True

    def test_allowed_days(self, evaluator):
        """Test weekday membership."""
        assert evaluator.evaluate(conditions(allowedDays=["monday", "wednesday"]), make_context()) is True
        assert evaluator.evaluate(conditions(allowedDays=["saturday", "sunday"]), make_context()) is False

    def test_ip_allowlist_prefix_entry(self, evaluator):
        """Test slash entries match on the first three octets."""
        payload = conditions(ipWhitelist=["10.0.0.0/24"])
        assert evaluator.evaluate(payload, make_context(ip_address="10.0.0.5")) is True
        assert evaluator.evaluate(payload, make_context(ip_address="10.0.1.5")) is False

    def test_ip_allowlist_literal_entry(self, evaluator):
        """Test literal entries need an exact match."""
        payload = conditions(ipWhitelist=["192.168.1.10"])
        assert evaluator.evaluate(payload, make_context(ip_address="192.168.1.10")) is True
        assert evaluator.evaluate(payload, make_context(ip_address="192.168.1.11")) is False

    def test_ip_allowlist_skipped_without_ip(self, evaluator):
        """Test the allowlist is skipped when the request has no IP."""
        payload = conditions(ipWhitelist=["10.0.0.0/24"])
        assert evaluator.evaluate(payload, make_context()) is True

    def test_ip_allowlist_fail_closed_without_ip(self):
        """Test the fail-closed toggle denies requests without an IP."""
        strict = ConditionEvaluator(clock=fixed_clock(), ip_allowlist_fail_closed=True)
        payload = conditions(ipWhitelist=["10.0.0.0/24"])
        assert strict.evaluate(payload, make_context()) is False
        assert strict.evaluate(payload, make_context(ip_address="10.0.0.5")) is True

    def test_require_mfa(self, evaluator):
        """Test MFA requirement."""
        payload = conditions(requireMFA=True)
        assert evaluator.evaluate(payload, make_context(mfa_verified=True)) is True
        assert evaluator.evaluate(payload, make_context(mfa_verified=False)) is False
        assert evaluator.evaluate(payload, make_context()) is False

    def test_all_restrictions_must_pass(self, evaluator):
        """Test restrictions combine with logical AND."""
        payload = conditions(
            timeRestricted=True,
            allowedHours="09:00-17:00",
            allowedDays=["wednesday"],
            ipWhitelist=["10.0.0.0/24"],
            requireMFA=True
        )
        assert evaluator.evaluate(payload, make_context("10.0.0.7", True)) is True
        assert evaluator.evaluate(payload, make_context("10.0.0.7", False)) is False
        assert evaluator.evaluate(payload, make_context("172.16.0.7", True)) is False

    def test_evaluation_uses_clock_per_call(self):
        """Test the clock is consulted on every evaluation."""
        moments = iter([datetime(2024, 1, 3, 10, 0), datetime(2024, 1, 3, 18, 0)])
        evaluator = ConditionEvaluator(clock=lambda: next(moments))
        payload = conditions(timeRestricted=True, allowedHours="09:00-17:00")

        assert evaluator.evaluate(payload, make_context()) is True
        assert evaluator.evaluate(payload, make_context()) is False


class TestHelpers:
    """Test cases for condition helper functions."""

    def test_day_name_is_sunday_indexed(self):
        assert day_name(datetime(2024, 1, 7)) == "sunday"
        assert day_name(datetime(2024, 1, 8)) == "monday"
        assert day_name(datetime(2024, 1, 6)) == "saturday"

    def test_ip_in_allowlist_ignores_prefix_length(self):
        assert ip_in_allowlist("10.1.2.200", ["10.1.2.0/28"]) is True
        assert ip_in_allowlist("10.1.3.1", ["10.1.2.0/16"]) is False

    def test_ip_in_allowlist_empty(self):
        assert ip_in_allowlist("10.0.0.1", []) is False
