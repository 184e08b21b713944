"""
fake_view.py - Test Helper for GatewayView

Provides a minimal GatewayView implementation for testing the composition
analyzer without requiring a full GatedLedger instance.
"""

from __future__ import annotations
from typing import Dict, Iterable, Optional


class FakeView:
    """
    Minimal GatewayView implementation backed by plain data.

    Example:
        view = FakeView(
            balances={'alice': 100},
            authorized={'alice', 'bob'},
        )

        view.is_authorized('bob')   # True
        view.balance_of('bob')      # 0
    """

    def __init__(
        self,
        balances: Optional[Dict[str, int]] = None,
        authorized: Optional[Iterable[str]] = None,
    ):
        self._balances = dict(balances or {})
        self._authorized = frozenset(authorized or ())

    def is_authorized(self, identity: str) -> bool:
        return identity in self._authorized

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def total_supply(self) -> int:
        return sum(self._balances.values())
