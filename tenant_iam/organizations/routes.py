"""
Tenant IAM - Organization Routes

Endpoints scoped to the caller's current organization, each guarded by a
"resource.action" permission:
- GET /organizations/current                                  organization.read
- GET /organizations/current/staff                            staff.read
- PUT /organizations/current/staff/{staff_id}/permissions     staff.update
"""

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Body, Depends

from tenant_iam.auth.database import UnitOfWork
from tenant_iam.auth.dependencies import get_unit_of_work, require_permission
from tenant_iam.auth.schemas import (
    Envelope,
    OrganizationResponse,
    StaffListResponse,
    StaffResponse,
)
from tenant_iam.auth.tokens import Principal
from tenant_iam.errors import NotFound


router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get(
    "/current",
    response_model=Envelope[OrganizationResponse],
    summary="Get the caller's organization",
)
def get_current_organization(
    principal: Principal = Depends(require_permission("organization.read")),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    with uow:
        org = uow.organizations.get(principal.org_id)
        if org is None:
            raise NotFound("Organization not found")
        return Envelope(data=OrganizationResponse.model_validate(org))


@router.get(
    "/current/staff",
    response_model=Envelope[StaffListResponse],
    summary="List staff of the caller's organization",
)
def list_staff(
    principal: Principal = Depends(require_permission("staff.read")),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    with uow:
        members = [
            StaffResponse.model_validate(s)
            for s in uow.staff.list_for_organization(principal.org_id)
        ]
    return Envelope(data=StaffListResponse(staff=members, total=len(members)))


@router.put(
    "/current/staff/{staff_id}/permissions",
    response_model=Envelope[StaffResponse],
    summary="Replace a staff member's permission map",
)
def update_staff_permissions(
    staff_id: UUID,
    permissions: Dict[str, Any] = Body(...),
    principal: Principal = Depends(require_permission("staff.update")),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    """
    The document is validated before it is written: resource and action
    keys must be non-empty and must not contain ".", values must be
    booleans.

    Raises:
        404: The staff row is not in the caller's organization
        422: Malformed permission document
    """
    with uow:
        staff = uow.staff.get_in_organization(staff_id, principal.org_id)
        if staff is None:
            raise NotFound("Staff member not found")
        uow.staff.set_permissions(staff, permissions)
        uow.commit()
    return Envelope(data=StaffResponse.model_validate(staff))
