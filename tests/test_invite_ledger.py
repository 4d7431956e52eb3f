import asyncio
import string

import pytest

from portal_core.errors import InviteExhausted, InviteNotFound, InviteScopeMismatch, ValidationError
from portal_core.invites.models import CharClass, InviteCode, InviteScope

E5 = InviteScope(tenant_id="t1", sku_name="E5")


async def test_generate_codes(ledger, tenant):
    codes = await ledger.generate([CharClass.DIGITS], length=6, quantity=20, per_code_limit=2, allowed_scopes=[E5])

    assert len(codes) == 20
    assert len({c.code for c in codes}) == 20
    for code in codes:
        assert len(code.code) == 6
        assert set(code.code) <= set(string.digits)
        assert code.limit == 2 and code.used == 0
        assert code.allowed_scopes == [E5]

    assert len(await ledger.list_codes()) == 20


async def test_generated_codes_are_unique_across_batches(ledger, tenant):
    first = await ledger.generate([CharClass.UPPERCASE], 4, 50, 1, [E5])
    second = await ledger.generate([CharClass.UPPERCASE], 4, 50, 1, [E5])
    assert not {c.code for c in first} & {c.code for c in second}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"char_classes": []},
        {"allowed_scopes": []},
        {"length": 3},
        {"length": 65},
        {"quantity": 0},
        {"quantity": 501},
        {"per_code_limit": 0},
    ],
)
async def test_generate_rejects_invalid_arguments(ledger, kwargs):
    arguments = {
        "char_classes": [CharClass.LOWERCASE],
        "length": 8,
        "quantity": 1,
        "per_code_limit": 1,
        "allowed_scopes": [E5],
        **kwargs,
    }
    with pytest.raises(ValidationError):
        await ledger.generate(**arguments)


async def test_redeem_increments_usage(ledger, tenant):
    [code] = await ledger.generate([CharClass.UPPERCASE], 8, 1, 2, [E5])

    redeemed = await ledger.redeem(code.code, "t1", "E5")
    assert redeemed.used == 1
    assert redeemed.used_at is not None

    await ledger.redeem(code.code, "t1", "E5")
    with pytest.raises(InviteExhausted):
        await ledger.redeem(code.code, "t1", "E5")

    assert (await ledger.get_code(code.code)).used == 2


async def test_unknown_code(ledger, tenant):
    with pytest.raises(InviteNotFound):
        await ledger.redeem("NOPE", "t1", "E5")


async def test_scope_mismatch_for_unlisted_sku(ledger, tenant):
    [code] = await ledger.generate([CharClass.UPPERCASE], 8, 1, 5, [E5])

    with pytest.raises(InviteScopeMismatch):
        await ledger.redeem(code.code, "t1", "A1")
    assert (await ledger.get_code(code.code)).used == 0


async def test_scope_mismatch_after_tenant_deleted(ledger, registry, tenant):
    [code] = await ledger.generate([CharClass.UPPERCASE], 8, 1, 5, [E5])
    await registry.delete_tenant("t1")

    with pytest.raises(InviteScopeMismatch):
        await ledger.redeem(code.code, "t1", "E5")
    assert await ledger.get_code(code.code) is not None


async def test_scope_mismatch_after_sku_removed(ledger, registry, tenant):
    [code] = await ledger.generate([CharClass.UPPERCASE], 8, 1, 5, [E5])
    await registry.update_tenant("t1", {"sku_map": {"A1": "sku-456"}})

    with pytest.raises(InviteScopeMismatch):
        await ledger.redeem(code.code, "t1", "E5")


async def test_concurrent_redemptions_never_exceed_limit(ledger, tenant):
    [code] = await ledger.generate([CharClass.UPPERCASE], 8, 1, 1, [E5])

    results = await asyncio.gather(
        *(ledger.redeem(code.code, "t1", "E5") for _ in range(30)),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, InviteCode)]
    assert len(successes) == 1
    assert all(isinstance(r, InviteExhausted) for r in results if not isinstance(r, InviteCode))
    assert (await ledger.get_code(code.code)).used == 1


async def test_concurrent_redemptions_fill_limit_exactly(ledger, tenant):
    [code] = await ledger.generate([CharClass.UPPERCASE], 8, 1, 3, [E5])

    results = await asyncio.gather(
        *(ledger.redeem(code.code, "t1", "E5") for _ in range(20)),
        return_exceptions=True,
    )

    assert sum(isinstance(r, InviteCode) for r in results) == 3
    assert (await ledger.get_code(code.code)).used == 3


async def test_bulk_delete(ledger, tenant):
    codes = await ledger.generate([CharClass.LOWERCASE], 8, 5, 1, [E5])

    removed = await ledger.bulk_delete([codes[0].code, codes[1].code, "missing"])
    assert removed == 2
    assert len(await ledger.list_codes()) == 3

    assert await ledger.delete(codes[2].code) is True
    assert await ledger.delete(codes[2].code) is False
    assert await ledger.bulk_delete([]) == 0


def test_invite_code_usage_bounds():
    with pytest.raises(ValueError):
        InviteCode(code="X", limit=1, used=2, allowed_scopes=[E5])
    with pytest.raises(ValueError):
        InviteCode(code="X", limit=1, allowed_scopes=[])
