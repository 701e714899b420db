"""
Permission evaluation.

A permission map is a flat ``{"module.action": level}`` lookup built by
reducing every RolePermission row of a user's roles with ``max``. A check
runs an ordered list of rules and the first rule that grants wins; when no
rule grants, the result is a ``Denied`` decision carrying the reason.

The evaluator is pure and is shared by the API dependencies and the
session client.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Union

from shopfloor.domain.exceptions import ValidationException

WILDCARD = "*"
WILDCARD_KEY = "*.*"
ADMIN_ACCESS_KEY = "admin.access"
ADMIN_BYPASS_LEVEL = 2

PermissionMap = Mapping[str, int]
PermissionSpec = Union[str, Sequence[str], "PermissionKey"]


class PermissionLevel(IntEnum):
    """Grant levels stored on RolePermission.value"""

    NONE = 0
    BASIC = 1
    MANAGE = 2
    FULL = 3


@dataclass(frozen=True)
class PermissionKey:
    """A ``(module, action)`` pair"""

    module: str
    action: str

    def __str__(self) -> str:
        return f"{self.module}.{self.action}"

    @classmethod
    def parse(cls, value: PermissionSpec) -> "PermissionKey":
        """
        Normalize ``"module.action"`` or ``(module, action)`` into a key.

        Raises:
            ValidationException: if the value is not one of the two shapes
        """
        if isinstance(value, PermissionKey):
            return value
        if isinstance(value, str):
            module, sep, action = value.partition(".")
            if not sep or "." in action:
                raise ValidationException(
                    f"Invalid permission key '{value}', expected 'module.action'",
                    field="permission",
                )
        elif isinstance(value, Sequence) and len(value) == 2:
            module, action = value[0], value[1]
        else:
            raise ValidationException(
                f"Invalid permission key {value!r}, expected 'module.action' or (module, action)",
                field="permission",
            )

        if not isinstance(module, str) or not isinstance(action, str) or not module or not action:
            raise ValidationException(
                f"Invalid permission key {value!r}: module and action must be non-empty",
                field="permission",
            )
        return cls(module=module, action=action)


def permission_key(module: str, action: str) -> str:
    return f"{module}.{action}"


@dataclass(frozen=True)
class Granted:
    """Access granted; ``rule`` names the rule that decided."""

    rule: str

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    """Access denied with the level that was found for the requested key."""

    reason: str
    actual_level: int = 0

    def __bool__(self) -> bool:
        return False


Decision = Union[Granted, Denied]


class PermissionRule:
    """One step of the evaluation chain. Returns ``Granted`` or ``None`` to fall through."""

    name = "rule"

    def evaluate(
        self, permissions: PermissionMap, key: PermissionKey, min_level: int
    ) -> Granted | None:
        raise NotImplementedError


class AdminAccessRule(PermissionRule):
    """``admin.access`` at level 2 or above authorizes every check."""

    name = "admin_access"

    def evaluate(
        self, permissions: PermissionMap, key: PermissionKey, min_level: int
    ) -> Granted | None:
        if permissions.get(ADMIN_ACCESS_KEY, 0) >= ADMIN_BYPASS_LEVEL:
            return Granted(rule=self.name)
        return None


class ExactGrantRule(PermissionRule):
    name = "exact_grant"

    def evaluate(
        self, permissions: PermissionMap, key: PermissionKey, min_level: int
    ) -> Granted | None:
        if permissions.get(str(key), 0) >= min_level:
            return Granted(rule=self.name)
        return None


class WildcardGrantRule(PermissionRule):
    name = "wildcard_grant"

    def evaluate(
        self, permissions: PermissionMap, key: PermissionKey, min_level: int
    ) -> Granted | None:
        if permissions.get(WILDCARD_KEY, 0) >= min_level:
            return Granted(rule=self.name)
        return None


class PermissionEvaluator:
    """
    Runs the rule chain in order.

    The default chain is admin bypass, then exact grant, then wildcard grant.
    Passing ``admin_bypass=False`` removes the ``admin.access`` escape hatch
    so administrators need real grants like everyone else.
    """

    def __init__(
        self,
        rules: Iterable[PermissionRule] | None = None,
        *,
        admin_bypass: bool = True,
    ) -> None:
        if rules is None:
            rules = [AdminAccessRule(), ExactGrantRule(), WildcardGrantRule()]
        self.rules: tuple[PermissionRule, ...] = tuple(
            rule for rule in rules if admin_bypass or not isinstance(rule, AdminAccessRule)
        )

    def decide(
        self,
        permissions: PermissionMap,
        permission: PermissionSpec,
        min_level: int = PermissionLevel.BASIC,
    ) -> Decision:
        if min_level < PermissionLevel.BASIC:
            raise ValidationException("min_level must be at least 1", field="min_level")

        key = PermissionKey.parse(permission)
        for rule in self.rules:
            granted = rule.evaluate(permissions, key, min_level)
            if granted is not None:
                return granted

        actual = permissions.get(str(key), 0)
        return Denied(
            reason=f"{key} requires level {min_level}, user has {actual}",
            actual_level=actual,
        )

    def has_permission(
        self,
        permissions: PermissionMap,
        module: str,
        action: str,
        min_level: int = PermissionLevel.BASIC,
    ) -> bool:
        return bool(self.decide(permissions, PermissionKey(module, action), min_level))


default_evaluator = PermissionEvaluator()


def has_permission(
    permissions: PermissionMap,
    module: str,
    action: str,
    min_level: int = PermissionLevel.BASIC,
) -> bool:
    """Check a permission map with the default rule chain"""
    return default_evaluator.has_permission(permissions, module, action, min_level)


def effective_level(permissions: PermissionMap, module: str, action: str) -> int:
    return permissions.get(permission_key(module, action), 0)


def aggregate_permissions(grants: Iterable[tuple[str, str, int]]) -> dict[str, int]:
    """
    Reduce ``(module, action, value)`` rows from all of a user's roles to one map.

    The effective level of a key is the maximum value across the rows; rows
    with a value of 0 or less grant nothing and are left out.
    """
    permissions: dict[str, int] = {}
    for module, action, value in grants:
        if value <= 0:
            continue
        key = permission_key(module, action)
        if value > permissions.get(key, 0):
            permissions[key] = value
    return permissions
