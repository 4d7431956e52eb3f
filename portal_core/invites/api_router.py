"""
Invite API Router

Admin endpoints for generating, listing and deleting invite codes.
"""

from fastapi import APIRouter, Depends, status

from ..auth.dependencies import require_admin
from ..dependencies import get_invite_ledger
from ..errors import NotFoundError
from .ledger import InviteLedger
from .schema import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    GenerateInvitesRequest,
    InviteListResponse,
    InviteResponse,
)

router = APIRouter(
    prefix="/admin/api/invites",
    tags=["Invites"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=InviteListResponse, summary="List invite codes")
async def list_invites(
    ledger: InviteLedger = Depends(get_invite_ledger),
) -> InviteListResponse:
    codes = await ledger.list_codes()
    return InviteListResponse(
        invites=[InviteResponse.from_invite(c) for c in codes],
        total=len(codes),
    )


@router.post(
    "",
    response_model=InviteListResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate invite codes",
)
async def generate_invites(
    request: GenerateInvitesRequest,
    ledger: InviteLedger = Depends(get_invite_ledger),
) -> InviteListResponse:
    """Generate a batch of codes valid for the given tenant/SKU scopes."""
    codes = await ledger.generate(
        char_classes=request.char_classes,
        length=request.length,
        quantity=request.quantity,
        per_code_limit=request.per_code_limit,
        allowed_scopes=request.allowed_scopes,
    )
    return InviteListResponse(
        invites=[InviteResponse.from_invite(c) for c in codes],
        total=len(codes),
    )


@router.post("/bulk-delete", response_model=BulkDeleteResponse, summary="Delete several codes")
async def bulk_delete_invites(
    request: BulkDeleteRequest,
    ledger: InviteLedger = Depends(get_invite_ledger),
) -> BulkDeleteResponse:
    return BulkDeleteResponse(deleted=await ledger.bulk_delete(request.codes))


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete invite code")
async def delete_invite(
    code: str,
    ledger: InviteLedger = Depends(get_invite_ledger),
) -> None:
    if not await ledger.delete(code):
        raise NotFoundError(f"Invite code '{code}' not found", code="invite_not_found")
