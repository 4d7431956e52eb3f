"""
Account Protection Guard

Decides whether an account address is reserved. Reserved accounts can be
neither registered nor deleted, nor have their password reset, in any tenant.
"""

from typing import Iterable, Optional

from ..config import PortalConfig, get_config
from .site_settings import SiteSettings


def local_part(address: str) -> str:
    """Return the lower-cased text before the first '@' (whole string if none)."""
    return address.strip().lower().split("@", 1)[0]


class ProtectionGuard:
    """
    Reserved-name check.

    A name is protected when its local-part equals a reserved name exactly,
    or when the full address is in the legacy reserved-address set. Reserved
    names are not prefixes: ``admin`` protects ``admin@x`` but not
    ``admin2@x``.
    """

    def __init__(
        self,
        reserved_local_parts: Iterable[str] = (),
        reserved_addresses: Iterable[str] = (),
    ):
        self.reserved_local_parts = frozenset(n.strip().lower() for n in reserved_local_parts if n.strip())
        self.reserved_addresses = frozenset(a.strip().lower() for a in reserved_addresses if a.strip())

    @classmethod
    def from_settings(
        cls,
        settings: SiteSettings,
        config: Optional[PortalConfig] = None,
    ) -> "ProtectionGuard":
        """
        Build a guard from the current settings snapshot.

        The environment's legacy hidden user is always part of the reserved
        address set.
        """
        config = config or get_config()
        addresses = list(settings.protected_users)
        if config.hidden_user:
            addresses.append(config.hidden_user)
        return cls(settings.protected_prefixes, addresses)

    def is_protected(self, address: str) -> bool:
        """
        Check if an address is reserved.

        Args:
            address: Full address or bare account name

        Returns:
            True if the address must not be created or mutated
        """
        normalized = address.strip().lower()
        return local_part(normalized) in self.reserved_local_parts or normalized in self.reserved_addresses

    def is_hidden(self, address: str) -> bool:
        """Check if an address is in the legacy reserved-address set."""
        return address.strip().lower() in self.reserved_addresses
