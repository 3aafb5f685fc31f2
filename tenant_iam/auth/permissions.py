"""
Tenant IAM - Permission Evaluation

Decides whether a principal may perform "resource.action" inside its
organization.

Order of evaluation:
1. guest role or no organization -> deny
2. admin / owner role -> allow, the stored map is never consulted
3. staff membership lookup; no row -> profile not found (deny)
4. permission string must be exactly "resource.action"
5. allow only if map[resource][action] is true

Security:
- Deny-by-default: a missing resource or action key is a denial
- Permission documents are validated when written, not when evaluated
"""

import logging
from enum import Enum
from typing import Callable, Dict, Optional, Tuple
from uuid import UUID

from pydantic import RootModel, StrictBool, ValidationError, field_validator

from tenant_iam.auth.models import Role
from tenant_iam.auth.tokens import Principal
from tenant_iam.errors import InvalidPermissionMap, PermissionConfigError


logger = logging.getLogger(__name__)

PERMISSION_SEPARATOR = "."

BYPASS_ROLES = frozenset({Role.ADMIN.value, Role.OWNER.value})


class PermissionMap(RootModel[Dict[str, Dict[str, StrictBool]]]):
    """
    Two-level permission document: {resource: {action: allowed}}.

    Example:
        >>> perms = PermissionMap.parse({"notes": {"create": True}})
        >>> perms.allows("notes", "create")
        True
        >>> perms.allows("notes", "delete")
        False
    """

    @field_validator("root")
    @classmethod
    def check_keys(cls, value: Dict[str, Dict[str, bool]]) -> Dict[str, Dict[str, bool]]:
        for resource, actions in value.items():
            _check_segment(resource)
            for action in actions:
                _check_segment(action)
        return value

    @classmethod
    def parse(cls, raw) -> "PermissionMap":
        """Validate a raw document, raising InvalidPermissionMap on bad shape."""
        if isinstance(raw, PermissionMap):
            return raw
        try:
            return cls.model_validate(raw if raw is not None else {})
        except ValidationError as e:
            raise InvalidPermissionMap(str(e)) from e

    def allows(self, resource: str, action: str) -> bool:
        return self.root.get(resource, {}).get(action, False) is True

    def to_document(self) -> Dict[str, Dict[str, bool]]:
        return {resource: dict(actions) for resource, actions in self.root.items()}


def _check_segment(key: str) -> None:
    if not key or PERMISSION_SEPARATOR in key:
        raise ValueError(f"Invalid permission key: {key!r}")


def parse_permission(required: str) -> Tuple[str, str]:
    """
    Split "resource.action" into its two segments.

    Raises:
        PermissionConfigError: Anything but two non-empty segments. This is
            a wiring bug in the caller, not an authorization outcome.
    """
    parts = required.split(PERMISSION_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise PermissionConfigError()
    return parts[0], parts[1]


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    PROFILE_NOT_FOUND = "profile_not_found"


PermissionLookup = Callable[[UUID, UUID], Optional[PermissionMap]]


class PermissionEvaluator:
    """
    Evaluates permission checks for one principal at a time.

    Args:
        lookup: Returns the staff permission map for (user_id, org_id),
            or None when no membership row exists. This is the only point
            where evaluation touches storage.
    """

    def __init__(self, lookup: PermissionLookup):
        self._lookup = lookup

    def evaluate(self, principal: Principal, required: str) -> Decision:
        if principal.role == Role.GUEST.value or principal.org_id is None:
            return Decision.DENY

        if principal.role in BYPASS_ROLES:
            return Decision.ALLOW

        permissions = self._lookup(principal.user_id, principal.org_id)
        if permissions is None:
            return Decision.PROFILE_NOT_FOUND

        resource, action = parse_permission(required)

        if permissions.allows(resource, action):
            return Decision.ALLOW
        return Decision.DENY

    def allowed(self, principal: Principal, resource: str, action: str) -> bool:
        """
        Boolean form of evaluate() for a separate resource and action.

        Raises:
            PermissionConfigError: resource or action is empty or contains
                ".", for every role
        """
        for segment in (resource, action):
            if not segment or PERMISSION_SEPARATOR in segment:
                raise PermissionConfigError()
        required = f"{resource}{PERMISSION_SEPARATOR}{action}"
        return self.evaluate(principal, required) is Decision.ALLOW
