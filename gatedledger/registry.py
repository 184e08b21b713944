"""
registry.py - Authorization Registry

Process-wide mapping from participant identity to a single authorized flag.

    grant(i)         -> flag(i) = True
    revoke(i)        -> flag(i) = False
    is_authorized(i) -> flag(i), False for identities never seen

No history is retained; the last write wins. Both mutators are idempotent
and never fail. The registry is unguarded: wrapping grant/revoke
in a governance layer is the embedding application's job.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, Optional

from .core import Identity, validate_identity


class AuthorizationRegistry:
    """
    Boolean credential store consulted by the gated ledger.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own registry and ledger.

    Example:
        registry = AuthorizationRegistry()
        registry.grant("alice")
        registry.is_authorized("alice")   # True
        registry.is_authorized("bob")     # False (never granted)
    """

    def __init__(self, authorized: Optional[Iterable[Identity]] = None, verbose: bool = False):
        """
        Create a registry.

        Args:
            authorized: Identities to grant up front
            verbose: Print grant/revoke events (default: False)
        """
        self._flags: Dict[Identity, bool] = {}
        self.verbose = verbose
        for identity in authorized or ():
            self.grant(identity)

    def grant(self, identity: Identity) -> None:
        """Set identity's flag to authorized."""
        validate_identity(identity)
        self._flags[identity] = True
        if self.verbose:
            print(f"🔑 GRANT: {identity}")

    def revoke(self, identity: Identity) -> None:
        """Set identity's flag to unauthorized."""
        validate_identity(identity)
        self._flags[identity] = False
        if self.verbose:
            print(f"🔒 REVOKE: {identity}")

    def is_authorized(self, identity: Identity) -> bool:
        """Pure lookup. Unknown identities are unauthorized."""
        return self._flags.get(identity, False)

    def authorized(self) -> FrozenSet[Identity]:
        """Return the set of identities whose flag is currently True."""
        return frozenset(i for i, flag in self._flags.items() if flag)

    def __contains__(self, identity: object) -> bool:
        return self._flags.get(identity, False) if isinstance(identity, str) else False

    def __len__(self) -> int:
        return sum(1 for flag in self._flags.values() if flag)

    # ========================================================================
    # ROLLBACK SUPPORT
    # ========================================================================

    def snapshot(self) -> Dict[Identity, bool]:
        """Capture the current flags (used by batch rollback)."""
        return dict(self._flags)

    def restore(self, snapshot: Dict[Identity, bool]) -> None:
        """Replace the current flags with a previously captured snapshot."""
        self._flags = dict(snapshot)

    def __repr__(self) -> str:
        return f"AuthorizationRegistry({len(self)} authorized)"
