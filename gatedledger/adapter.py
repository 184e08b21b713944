"""
adapter.py - Wrap/Unwrap Adapter

Turns external value into ledger units and back at a fixed 1:1 rate.

Pattern:
    Wrap (deposit external value, receive ledger units):
        value_source.pull(identity, amount)        reserve += amount
        ledger.issue(identity, amount * scale)     gated on identity as destination

    Unwrap (return ledger units, receive external value):
        ledger.redeem(identity, units)             gated on identity as source
        value_source.push(identity, units / scale) reserve -= units / scale

scale = 10 ** (ledger_decimals - source_decimals) matches precision when the
ledger keeps more decimals than the external value; with equal decimals it
is 1 and amounts map one-for-one.

Full backing invariant: reserve * scale == ledger.total_supply(), always.
Both operations are atomic: if the second step fails the first is undone
before the error propagates.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .core import (
    Identity, Transaction, Snapshottable, DEFAULT_ADAPTER, DEFAULT_DECIMALS,
    GatewayError, validate_amount, validate_identity,
)
from .ledger import GatedLedger
from .value_source import ValueSource


@dataclass(frozen=True, slots=True)
class AdapterSnapshot:
    reserve: int


class WrapAdapter:
    """
    The sole gate between the reserve and the ledger.

    The adapter itself never needs a registry entry: the reserve is not an
    identity, so the only check on each call is the one the ledger applies to
    the human-facing side (destination of issue, source of redeem).

    Example:
        source = InMemoryValueSource("wrapper", {"alice": 100})
        adapter = WrapAdapter(ledger, source)
        source.approve("alice", 100)
        adapter.wrap("alice", 100)     # alice: 100 ledger units, reserve: 100
        adapter.unwrap("alice", 100)   # alice: 100 external again, reserve: 0
    """

    def __init__(
        self,
        ledger: GatedLedger,
        value_source: ValueSource,
        identity: Optional[Identity] = None,
        source_decimals: int = DEFAULT_DECIMALS,
        ledger_decimals: Optional[int] = None,
    ):
        """
        Create an adapter.

        Args:
            ledger: Ledger to issue into and redeem from
            value_source: Where backing value is pulled from and pushed to
            identity: The adapter's account at the value source (default: the
                      value source's holder, else DEFAULT_ADAPTER)
            source_decimals: Precision of external amounts
            ledger_decimals: Precision of ledger units (default: source_decimals)

        Raises:
            ValueError: If ledger_decimals < source_decimals (the rate could not
                        stay exactly 1:1), or identity differs from the value
                        source's holder
        """
        holder = getattr(value_source, 'holder', None)
        if identity is None:
            identity = holder if holder is not None else DEFAULT_ADAPTER
        elif holder is not None and identity != holder:
            raise ValueError(
                f"adapter identity {identity} does not match value source holder {holder}"
            )
        if ledger_decimals is None:
            ledger_decimals = source_decimals
        if source_decimals < 0 or ledger_decimals < source_decimals:
            raise ValueError(
                f"ledger_decimals ({ledger_decimals}) must be >= "
                f"source_decimals ({source_decimals}) >= 0"
            )
        self.ledger = ledger
        self.value_source = value_source
        self.identity = validate_identity(identity)
        self.source_decimals = source_decimals
        self.ledger_decimals = ledger_decimals
        self.scale = 10 ** (ledger_decimals - source_decimals)
        self._reserve = 0

    @property
    def reserve(self) -> int:
        """External value currently held as backing, in source precision."""
        return self._reserve

    def to_ledger_units(self, amount: int) -> int:
        """Convert an external amount to ledger units."""
        return validate_amount(amount) * self.scale

    def to_source_units(self, units: int) -> int:
        """
        Convert ledger units to an external amount.

        Raises:
            ValueError: If units is not a whole multiple of scale
        """
        validate_amount(units, "units")
        if units % self.scale:
            raise ValueError(
                f"{units} ledger units is not a multiple of scale {self.scale}"
            )
        return units // self.scale

    def wrap(self, identity: Identity, amount: int, via: Optional[Identity] = None) -> Transaction:
        """
        Pull amount of external value from identity and issue ledger units to it.

        Raises:
            DestinationNotAuthorized: If identity is not authorized (the pulled
                                      value is returned first)
            ValueError: If identity is the adapter's own account
            Any error raised by the value source's pull, unchanged
        """
        self._require_counterparty(identity)
        units = self.to_ledger_units(amount)
        checkpoint = (
            self.value_source.snapshot()
            if isinstance(self.value_source, Snapshottable) else None
        )
        self.value_source.pull(identity, amount)
        try:
            tx = self.ledger.issue(identity, units, via=via)
        except GatewayError:
            # Undo the pull: restore allowances too when the source allows it
            if checkpoint is not None:
                self.value_source.restore(checkpoint)
            else:
                self.value_source.push(identity, amount)
            raise
        self._reserve += amount
        return tx

    def unwrap(self, identity: Identity, units: int, via: Optional[Identity] = None) -> Transaction:
        """
        Redeem units from identity and release the backing value to it.

        Raises:
            SourceNotAuthorized: If identity is not authorized
            InsufficientBalance: If identity holds fewer than units
            ValueError: If units is not a multiple of scale, or identity is
                        the adapter's own account
            Any error raised by the value source's push, unchanged (the
            redemption is rolled back first)
        """
        self._require_counterparty(identity)
        amount = self.to_source_units(units)
        checkpoint = self.ledger.snapshot()
        tx = self.ledger.redeem(identity, units, via=via)
        try:
            self.value_source.push(identity, amount)
        except Exception:
            self.ledger.restore(checkpoint)
            raise
        self._reserve -= amount
        return tx

    def _require_counterparty(self, identity: Identity) -> None:
        validate_identity(identity)
        if identity == self.identity:
            raise ValueError(
                f"{identity} is the adapter's own account and cannot wrap or unwrap"
            )

    def verify_backing(self) -> Dict[str, Any]:
        """
        Check the full backing invariant.

        Returns:
            Dict with keys:
            - 'valid': bool - reserve * scale == supply (and, when the value
              source can report it, the adapter's external balance covers reserve)
            - 'reserve': int
            - 'supply': int
            - 'held': Optional[int] - adapter's balance at the value source
        """
        supply = self.ledger.total_supply()
        balance_of = getattr(self.value_source, 'balance_of', None)
        held = balance_of(self.identity) if callable(balance_of) else None
        valid = self._reserve * self.scale == supply
        if held is not None:
            valid = valid and held >= self._reserve
        return {
            'valid': valid,
            'reserve': self._reserve,
            'supply': supply,
            'held': held,
        }

    def snapshot(self) -> AdapterSnapshot:
        return AdapterSnapshot(reserve=self._reserve)

    def restore(self, snapshot: AdapterSnapshot) -> None:
        self._reserve = snapshot.reserve

    def __repr__(self) -> str:
        return (
            f"WrapAdapter({self.identity}, reserve={self._reserve}, "
            f"scale={self.scale})"
        )
