"""
conftest.py - Shared pytest fixtures for gateway tests

Provides common fixtures used across unit, conformance and functional tests:
- Bare registry/ledger pairs
- A full gateway (ledger + in-memory value source + adapter + orchestrator)

Helpers for custom setups live in tests/gateway_helpers.py.
"""

import pytest
from datetime import datetime

from gatedledger import AuthorizationRegistry, GatedLedger
from tests.gateway_helpers import make_gateway


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def registry():
    """Fresh registry with nobody authorized."""
    return AuthorizationRegistry()


@pytest.fixture
def ledger(registry):
    """Empty ledger in test mode bound to the registry fixture."""
    return GatedLedger("test", registry, datetime(2025, 1, 1), verbose=False, test_mode=True)


@pytest.fixture
def authorized_ledger(ledger):
    """Ledger where alice and bob are authorized and alice holds 1000 units."""
    ledger.registry.grant("alice")
    ledger.registry.grant("bob")
    ledger.issue("alice", 1000)
    return ledger


# =============================================================================
# GATEWAY FIXTURES
# =============================================================================

@pytest.fixture
def gateway():
    """Gateway with alice and bob authorized, carol not; all hold external value."""
    return make_gateway(
        authorized=["alice", "bob"],
        external={"alice": 1000, "bob": 1000, "carol": 1000},
    )


@pytest.fixture
def wrapped_gateway(gateway):
    """Gateway where alice has already wrapped 500."""
    gateway.adapter.wrap("alice", 500)
    return gateway
