"""
gateway_helpers.py - Test helpers for building and inspecting gateways

Used by conftest fixtures and directly by tests that need custom setups.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from gatedledger import (
    AuthorizationRegistry,
    GatedLedger,
    InMemoryValueSource,
    WrapAdapter,
    Orchestrator,
)


@dataclass
class Gateway:
    """Bundle of the components most tests need together."""
    registry: AuthorizationRegistry
    ledger: GatedLedger
    source: InMemoryValueSource
    adapter: WrapAdapter
    orchestrator: Orchestrator

    def fund(self, identity: str, amount: int) -> None:
        """Give identity external value and approve the adapter to pull it."""
        self.source.mint(identity, amount)
        self.source.approve(identity, self.source.allowance(identity) + amount)


def make_gateway(
    authorized: Iterable[str] = (),
    external: Optional[Dict[str, int]] = None,
    test_mode: bool = True,
    source_decimals: int = 18,
    ledger_decimals: Optional[int] = None,
    collaborators: Tuple[Any, ...] = (),
) -> Gateway:
    """Build a gateway with the given identities granted and funded."""
    registry = AuthorizationRegistry(authorized)
    ledger = GatedLedger(
        "test", registry, datetime(2025, 1, 1), verbose=False, test_mode=test_mode
    )
    source = InMemoryValueSource("wrapper", decimals=source_decimals)
    adapter = WrapAdapter(
        ledger, source,
        source_decimals=source_decimals,
        ledger_decimals=ledger_decimals,
    )
    orchestrator = Orchestrator(ledger, adapter, collaborators=collaborators)
    gateway = Gateway(registry, ledger, source, adapter, orchestrator)
    for identity, amount in (external or {}).items():
        gateway.fund(identity, amount)
    return gateway


def capture_state(gateway: Gateway) -> Tuple[Any, ...]:
    """Everything a failed batch must leave untouched."""
    return (
        gateway.ledger.get_balances(),
        gateway.ledger.total_supply(),
        tuple(gateway.ledger.transaction_log),
        gateway.registry.authorized(),
        gateway.source.snapshot(),
        gateway.adapter.reserve,
    )


def assert_backed(gateway: Gateway) -> None:
    """Conservation and full backing both hold."""
    conservation = gateway.ledger.verify_conservation(
        expected_supply=gateway.adapter.reserve * gateway.adapter.scale
    )
    assert conservation['valid'], conservation['discrepancies']
    backing = gateway.adapter.verify_backing()
    assert backing['valid'], backing
