"""
Invites Module

Scoped, use-limited invite codes gating registration.
"""

from .ledger import InviteLedger
from .models import CharClass, InviteCode, InviteScope

__all__ = ["InviteLedger", "CharClass", "InviteCode", "InviteScope"]
