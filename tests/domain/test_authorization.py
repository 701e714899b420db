"""Test permission evaluation rules"""

import pytest

from shopfloor.domain.authorization import (Denied, Granted, PermissionEvaluator,
                                            PermissionKey, PermissionLevel,
                                            aggregate_permissions, effective_level,
                                            has_permission)
from shopfloor.domain.exceptions import ValidationException

MANAGER = {"production.read": 2, "production.create": 1}


class TestPermissionKey:
    def test_parse_dotted(self):
        assert PermissionKey.parse("timeTracking.viewAll") == PermissionKey("timeTracking", "viewAll")

    def test_parse_pair(self):
        assert PermissionKey.parse(("chat", "send")) == PermissionKey("chat", "send")

    def test_parse_key_is_identity(self):
        key = PermissionKey("users", "read")
        assert PermissionKey.parse(key) is key

    @pytest.mark.parametrize("value", ["users", "a.b.c", ".read", "users.", ("users",), 42])
    def test_parse_rejects_malformed(self, value):
        with pytest.raises(ValidationException):
            PermissionKey.parse(value)

    def test_str(self):
        assert str(PermissionKey("roles", "delete")) == "roles.delete"


class TestEvaluator:
    def test_exact_grant_at_required_level(self):
        decision = PermissionEvaluator().decide(MANAGER, "production.read", 2)

        assert decision == Granted(rule="exact_grant")

    def test_level_below_requirement_is_denied(self):
        decision = PermissionEvaluator().decide(MANAGER, "production.create", 2)

        assert isinstance(decision, Denied)
        assert not decision
        assert decision.actual_level == 1
        assert decision.reason == "production.create requires level 2, user has 1"

    def test_missing_key_is_denied_at_level_zero(self):
        decision = PermissionEvaluator().decide(MANAGER, "roles.delete")

        assert not decision
        assert decision.actual_level == 0

    def test_admin_access_bypasses_everything(self):
        permissions = {"admin.access": 3}

        decision = PermissionEvaluator().decide(permissions, "anything.at_all", 3)

        assert decision == Granted(rule="admin_access")

    def test_admin_access_level_one_does_not_bypass(self):
        assert not PermissionEvaluator().decide({"admin.access": 1}, "roles.delete")

    def test_admin_bypass_can_be_disabled(self):
        evaluator = PermissionEvaluator(admin_bypass=False)

        assert not evaluator.decide({"admin.access": 3}, "roles.delete")
        assert evaluator.decide({"admin.access": 3}, "admin.access", 3)

    def test_wildcard_grant(self):
        decision = PermissionEvaluator().decide({"*.*": 2}, "chat.send", 2)

        assert decision == Granted(rule="wildcard_grant")
        assert not PermissionEvaluator().decide({"*.*": 2}, "chat.send", 3)

    def test_min_level_must_be_positive(self):
        with pytest.raises(ValidationException):
            PermissionEvaluator().decide(MANAGER, "production.read", PermissionLevel.NONE)

    def test_module_level_helpers(self):
        assert has_permission(MANAGER, "production", "read", PermissionLevel.MANAGE)
        assert not has_permission(MANAGER, "production", "delete")
        assert effective_level(MANAGER, "production", "read") == 2
        assert effective_level(MANAGER, "production", "delete") == 0


class TestAggregatePermissions:
    def test_highest_value_across_roles_wins(self):
        grants = [
            ("production", "read", 1),
            ("production", "read", 3),
            ("production", "read", 2),
            ("chat", "send", 1),
        ]

        assert aggregate_permissions(grants) == {"production.read": 3, "chat.send": 1}

    def test_zero_grants_are_dropped(self):
        assert aggregate_permissions([("users", "delete", 0)]) == {}

    def test_order_does_not_matter(self):
        grants = [("users", "read", 2), ("users", "read", 1)]

        assert aggregate_permissions(grants) == aggregate_permissions(reversed(grants))
