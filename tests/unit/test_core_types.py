"""
test_core_types.py - Unit tests for core types and validation

Tests:
- Amount and identity validation
- Hop variant construction and immutability
- Transaction record formatting
- Error taxonomy
"""

import pytest
from dataclasses import FrozenInstanceError
from datetime import datetime

from gatedledger import (
    Issue, Redeem, Transfer, Wrap, Unwrap, Grant, Revoke, Call,
    HopKind, Side, Transaction,
    GatewayError, AuthorizationError, SourceNotAuthorized,
    DestinationNotAuthorized, InsufficientBalance,
    validate_amount, validate_identity,
    GatewayView, Snapshottable, AuthorizationRegistry, GatedLedger,
)
from tests.fake_view import FakeView


class TestValidation:
    """Tests for amount/identity validation helpers."""

    def test_zero_amount_allowed(self):
        assert validate_amount(0) == 0

    def test_positive_amount_returned(self):
        assert validate_amount(10**30) == 10**30

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            validate_amount(-1)

    @pytest.mark.parametrize("bad", [1.0, "10", None, True, False])
    def test_non_int_amount_rejected(self, bad):
        """Floats, strings and bools are not amounts."""
        with pytest.raises(ValueError, match="must be int"):
            validate_amount(bad)

    def test_identity_must_be_non_empty(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_identity("")
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_identity("   ")

    def test_identity_must_be_str(self):
        with pytest.raises(ValueError):
            validate_identity(42)


class TestHopVariants:
    """Tests for hop dataclasses."""

    def test_kinds(self):
        assert Issue("a", 1).kind == HopKind.ISSUE
        assert Redeem("a", 1).kind == HopKind.REDEEM
        assert Transfer("a", "b", 1).kind == HopKind.TRANSFER
        assert Wrap("a", 1).kind == HopKind.WRAP
        assert Unwrap("a", 1).kind == HopKind.UNWRAP
        assert Grant("a").kind == HopKind.GRANT
        assert Revoke("a").kind == HopKind.REVOKE
        assert Call(print).kind == HopKind.CALL

    def test_hops_are_frozen(self):
        hop = Transfer("a", "b", 1)
        with pytest.raises(FrozenInstanceError):
            hop.amount = 2

    def test_transfer_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            Transfer("a", "b", -5)

    def test_issue_rejects_empty_destination(self):
        with pytest.raises(ValueError, match="destination"):
            Issue("", 5)

    def test_via_validated_when_given(self):
        with pytest.raises(ValueError, match="via"):
            Transfer("a", "b", 1, via="")

    def test_unwrap_units_validated(self):
        with pytest.raises(ValueError, match="units"):
            Unwrap("a", -1)

    def test_call_requires_callable(self):
        with pytest.raises(ValueError, match="callable"):
            Call("not a function")

    def test_call_args_become_tuple(self):
        hop = Call(max, [1, 2])
        assert hop.args == (1, 2)

    def test_call_repr_uses_label(self):
        assert repr(Call(max, label="vault.supply")) == "Call(vault.supply)"

    def test_reserve_shown_in_repr(self):
        assert "reserve" in repr(Issue("a", 1))
        assert "reserve" in repr(Redeem("a", 1))


class TestTransaction:
    """Tests for executed Transaction records."""

    def _tx(self, **overrides):
        fields = dict(
            kind=HopKind.TRANSFER, source="a", destination="b", amount=7,
            initiator="router", exec_id="exec:test:000000000000:0",
            ledger_name="test", execution_time=datetime(2025, 1, 1),
            sequence_number=3,
        )
        fields.update(overrides)
        return Transaction(**fields)

    def test_parties(self):
        assert self._tx().parties() == ("a", "b")

    def test_parties_skip_reserve(self):
        tx = self._tx(kind=HopKind.ISSUE, source=None)
        assert tx.parties() == ("b",)

    def test_repr(self):
        assert repr(self._tx()) == "Transaction(#3 TRANSFER 7: a→b via router)"

    def test_repr_reserve_side(self):
        tx = self._tx(kind=HopKind.REDEEM, destination=None, initiator=None)
        assert repr(tx) == "Transaction(#3 REDEEM 7: a→reserve)"


class TestErrors:
    """Tests for the error taxonomy."""

    def test_hierarchy(self):
        assert issubclass(SourceNotAuthorized, AuthorizationError)
        assert issubclass(DestinationNotAuthorized, AuthorizationError)
        assert issubclass(AuthorizationError, GatewayError)
        assert issubclass(InsufficientBalance, GatewayError)

    def test_authorization_error_carries_identity_and_side(self):
        err = SourceNotAuthorized("mallory")
        assert err.identity == "mallory"
        assert err.side is Side.SOURCE
        assert str(err) == "source mallory not authorized"

        err = DestinationNotAuthorized("mallory")
        assert err.side is Side.DESTINATION
        assert str(err) == "destination mallory not authorized"

    def test_insufficient_balance_fields(self):
        err = InsufficientBalance("alice", 10, 3)
        assert (err.identity, err.requested, err.available) == ("alice", 10, 3)

    def test_hop_index_defaults_to_none(self):
        assert SourceNotAuthorized("x").hop_index is None


class TestProtocols:
    """GatewayView / Snapshottable structural checks."""

    def test_ledger_is_gateway_view(self):
        assert isinstance(GatedLedger("t", verbose=False), GatewayView)

    def test_fake_view_is_gateway_view(self):
        assert isinstance(FakeView(), GatewayView)

    def test_registry_is_snapshottable(self):
        assert isinstance(AuthorizationRegistry(), Snapshottable)
