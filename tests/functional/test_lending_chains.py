"""
test_lending_chains.py - Composed chains through an external lending vault

The vault is an ordinary participant: it is gated when it receives
collateral and again when it releases it. The orchestrator drives wrap,
supply, withdraw and unwrap as one atomic batch.
"""

import pytest

from gatedledger import (
    Batch, Orchestrator, Wrap, Unwrap, Transfer, Revoke, Call,
    SourceNotAuthorized, DestinationNotAuthorized, analyze,
)
from tests.gateway_helpers import make_gateway, capture_state, assert_backed
from tests.fake_vault import FakeLendingVault


@pytest.fixture
def setup():
    gw = make_gateway(["alice", "bob"], {"alice": 1000})
    vault = FakeLendingVault(gw.ledger, "vault")
    orchestrator = Orchestrator(gw.ledger, gw.adapter, collaborators=(vault,))
    return gw, vault, orchestrator


class TestLendingChains:

    def test_ungranted_vault_cannot_take_collateral(self, setup):
        gw, vault, orchestrator = setup
        before = capture_state(gw)
        with pytest.raises(DestinationNotAuthorized) as exc_info:
            orchestrator.execute(Batch([
                Wrap("alice", 500),
                Call(vault.supply, ("alice", 500), label="vault.supply"),
            ]))
        assert exc_info.value.identity == "vault"
        assert exc_info.value.hop_index == 1
        assert capture_state(gw) == before
        assert vault.shares == {}

    def test_wrap_and_supply(self, setup):
        gw, vault, orchestrator = setup
        gw.registry.grant("vault")
        result = orchestrator.execute(Batch([
            Wrap("alice", 500),
            Call(vault.supply, ("alice", 500), label="vault.supply"),
        ]))
        assert vault.shares == {"alice": 500}
        assert vault.total_assets() == 500
        assert result.transactions[1].initiator == "vault"
        assert_backed(gw)

    def test_full_round_trip(self, setup):
        gw, vault, orchestrator = setup
        gw.registry.grant("vault")
        orchestrator.execute(Batch([
            Wrap("alice", 500),
            Call(vault.supply, ("alice", 500)),
            Call(vault.withdraw, ("alice", "bob", 200)),
            Unwrap("bob", 200),
        ]))
        assert vault.shares == {"alice": 300}
        assert gw.source.balance_of("bob") == 200
        assert gw.adapter.reserve == 300
        assert_backed(gw)

    def test_withdraw_to_ungranted_receiver_rolls_back_all(self, setup):
        gw, vault, orchestrator = setup
        gw.registry.grant("vault")
        before = capture_state(gw)
        with pytest.raises(DestinationNotAuthorized) as exc_info:
            orchestrator.execute(Batch([
                Wrap("alice", 500),
                Call(vault.supply, ("alice", 500)),
                Call(vault.withdraw, ("alice", "carol", 500)),
            ]))
        assert exc_info.value.identity == "carol"
        assert exc_info.value.hop_index == 2
        assert capture_state(gw) == before
        assert vault.shares == {}

    def test_revoked_vault_freezes_collateral(self, setup):
        """Collateral supplied while granted cannot leave once the vault is revoked."""
        gw, vault, orchestrator = setup
        gw.registry.grant("vault")
        orchestrator.execute(Batch([
            Wrap("alice", 500),
            Call(vault.supply, ("alice", 500)),
        ]))
        gw.registry.revoke("vault")

        with pytest.raises(SourceNotAuthorized) as exc_info:
            orchestrator.execute(Batch([Call(vault.withdraw, ("alice", "alice", 100))]))
        assert exc_info.value.identity == "vault"
        assert vault.shares == {"alice": 500}
        assert vault.total_assets() == 500

    def test_vault_as_holder_in_analysis(self, setup):
        """Modelled as plain transfers, the vault is a holder and must stay granted."""
        gw, _, _ = setup
        gw.registry.grant("vault")
        hops = [
            Wrap("alice", 100),
            Transfer("alice", "vault", 100, via="vault"),
            Revoke("vault"),
            Transfer("vault", "bob", 100, via="vault"),
        ]
        report = analyze(gw.ledger, hops, initiator="orchestrator")
        # alice receives from the wrap before supplying, so she holds too
        assert report.holders == frozenset({"alice", "vault"})
        assert report.relays == frozenset({"orchestrator"})
        assert report.failed_hop == 3
        assert isinstance(report.error, SourceNotAuthorized)
