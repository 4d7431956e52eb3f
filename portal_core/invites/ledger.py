"""
Invite Ledger

Generates, scopes and redeems invite codes. The ledger is one serialized
list in the key-value store; every mutation is a conditional write that is
retried on conflict, so concurrent redemptions of the same code can never
push ``used`` past ``limit``.
"""

import secrets
from datetime import datetime
from typing import Iterable, Optional

from structlog import get_logger

from ..config import PortalConfig, get_config
from ..errors import (
    InviteExhausted,
    InviteNotFound,
    InviteScopeMismatch,
    ValidationError,
)
from ..storage import KeyValueStore, update_with_retry
from ..tenant_management.registry import TenantRegistry
from .models import CharClass, InviteCode, InviteScope

logger = get_logger()

INVITES_KEY = "invites"

MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 64
MAX_BATCH_SIZE = 500


def _load(raw: Optional[list]) -> list[InviteCode]:
    return [InviteCode(**item) for item in (raw or [])]


def _dump(codes: list[InviteCode]) -> list[dict]:
    return [code.model_dump(mode="json") for code in codes]


class InviteLedger:
    """Store-backed invite code ledger."""

    def __init__(
        self,
        store: KeyValueStore,
        registry: TenantRegistry,
        config: Optional[PortalConfig] = None,
    ):
        """
        Initialize invite ledger.

        Args:
            store: Key-value store holding the ledger
            registry: Tenant registry, consulted so scopes of deleted
                tenants or removed SKUs no longer match
            config: Portal configuration (uses cached config if not provided)
        """
        self.store = store
        self.registry = registry
        self.config = config or get_config()

    async def _update(self, mutate) -> list[InviteCode]:
        raw = await update_with_retry(
            self.store,
            INVITES_KEY,
            mutate,
            attempts=self.config.store_conflict_retries,
        )
        return _load(raw)

    @staticmethod
    def _draw_code(alphabet: str, length: int) -> str:
        return "".join(secrets.choice(alphabet) for _ in range(length))

    async def generate(
        self,
        char_classes: Iterable[CharClass],
        length: int,
        quantity: int,
        per_code_limit: int,
        allowed_scopes: Iterable[InviteScope],
    ) -> list[InviteCode]:
        """
        Create a batch of invite codes.

        Args:
            char_classes: Character classes to draw characters from
            length: Characters per code
            quantity: Number of codes to create
            per_code_limit: Redemptions allowed per code
            allowed_scopes: (tenant, SKU) pairs the codes are valid for

        Returns:
            The new codes

        Raises:
            ValidationError: If no class or no scope is selected, or a
                numeric argument is out of range
        """
        classes = sorted(set(char_classes), key=lambda c: c.value)
        scopes = list(dict.fromkeys(allowed_scopes))

        if not classes:
            raise ValidationError("Select at least one character class")
        if not scopes:
            raise ValidationError("Select at least one tenant/subscription scope")
        if not MIN_CODE_LENGTH <= length <= MAX_CODE_LENGTH:
            raise ValidationError(f"Code length must be between {MIN_CODE_LENGTH} and {MAX_CODE_LENGTH}")
        if not 1 <= quantity <= MAX_BATCH_SIZE:
            raise ValidationError(f"Quantity must be between 1 and {MAX_BATCH_SIZE}")
        if per_code_limit < 1:
            raise ValidationError("Each code must allow at least one use")

        alphabet = "".join(c.alphabet for c in classes)
        if len(alphabet) ** length < quantity * 4:
            raise ValidationError("Code length too short for the requested quantity")

        created: list[InviteCode] = []

        def mutate(raw):
            codes = _load(raw)
            taken = {c.code for c in codes}
            created.clear()
            now = datetime.utcnow()
            while len(created) < quantity:
                candidate = self._draw_code(alphabet, length)
                if candidate in taken:
                    continue
                taken.add(candidate)
                created.append(
                    InviteCode(
                        code=candidate,
                        limit=per_code_limit,
                        created_at=now,
                        allowed_scopes=scopes,
                    )
                )
            return _dump(codes + created)

        await self._update(mutate)
        logger.info(
            "invite_codes_generated",
            quantity=quantity,
            per_code_limit=per_code_limit,
            scopes=[(s.tenant_id, s.sku_name) for s in scopes],
        )
        return list(created)

    async def _scope_is_live(self, tenant_id: str, sku_name: str) -> bool:
        tenant = await self.registry.get_tenant(tenant_id)
        return tenant is not None and sku_name in tenant.sku_map

    async def redeem(self, code: str, tenant_id: str, sku_name: str) -> InviteCode:
        """
        Consume one use of an invite code for a tenant and SKU.

        Args:
            code: Invite code
            tenant_id: Tenant the registrant chose
            sku_name: SKU the registrant chose

        Returns:
            The code after redemption

        Raises:
            InviteNotFound: If the code does not exist
            InviteExhausted: If the code has no uses left
            InviteScopeMismatch: If the code is not valid for this tenant
                and SKU, or the tenant/SKU no longer exists
        """
        code = (code or "").strip()
        scope_live = await self._scope_is_live(tenant_id, sku_name)

        def mutate(raw):
            codes = _load(raw)
            for index, invite in enumerate(codes):
                if invite.code != code:
                    continue
                if invite.is_exhausted:
                    raise InviteExhausted("Invite code has been used up")
                if not scope_live or not invite.allows(tenant_id, sku_name):
                    raise InviteScopeMismatch("Invite code is not valid for this subscription")
                codes[index] = invite.model_copy(
                    update={"used": invite.used + 1, "used_at": datetime.utcnow()}
                )
                return _dump(codes)
            raise InviteNotFound("Invite code not found")

        try:
            codes = await self._update(mutate)
        except (InviteNotFound, InviteExhausted, InviteScopeMismatch) as e:
            logger.info("invite_redemption_rejected", tenant_id=tenant_id, sku_name=sku_name, reason=e.code)
            raise

        redeemed = next(c for c in codes if c.code == code)
        logger.info(
            "invite_redeemed",
            tenant_id=tenant_id,
            sku_name=sku_name,
            used=redeemed.used,
            limit=redeemed.limit,
        )
        return redeemed

    async def list_codes(self) -> list[InviteCode]:
        """List all invite codes, newest first."""
        codes = _load(await self.store.get(INVITES_KEY))
        return sorted(codes, key=lambda c: c.created_at, reverse=True)

    async def get_code(self, code: str) -> Optional[InviteCode]:
        for invite in _load(await self.store.get(INVITES_KEY)):
            if invite.code == code:
                return invite
        return None

    async def bulk_delete(self, codes: Iterable[str]) -> int:
        """
        Remove every ledger entry whose code is listed.

        Returns:
            Number of entries removed
        """
        targets = {c.strip() for c in codes if c and c.strip()}
        if not targets:
            return 0

        removed = 0

        def mutate(raw):
            nonlocal removed
            current = _load(raw)
            kept = [c for c in current if c.code not in targets]
            removed = len(current) - len(kept)
            return _dump(kept)

        await self._update(mutate)
        logger.info("invite_codes_deleted", requested=len(targets), removed=removed)
        return removed

    async def delete(self, code: str) -> bool:
        """Remove a single code. Returns True if it existed."""
        return await self.bulk_delete([code]) > 0
