"""
Tenant IAM - Authentication Package

Authentication and authorization core with:
- bcrypt password hashing
- Short-lived JWT access tokens and opaque refresh tokens
- Atomic tenant registration (user + organization + admin staff)
- Deny-by-default resource.action permission checks
"""

from tenant_iam.auth.models import User, Organization, Staff, RefreshToken, Role
from tenant_iam.auth.password import CredentialHasher
from tenant_iam.auth.permissions import Decision, PermissionEvaluator, PermissionMap
from tenant_iam.auth.tokens import Principal, TokenService
from tenant_iam.auth.dependencies import get_current_principal, require_permission

__all__ = [
    "User",
    "Organization",
    "Staff",
    "RefreshToken",
    "Role",
    "CredentialHasher",
    "Decision",
    "PermissionEvaluator",
    "PermissionMap",
    "Principal",
    "TokenService",
    "get_current_principal",
    "require_permission",
]
