"""
ledger.py - Gated Fungible Balance Ledger

The GatedLedger class is the central state manager for the gateway.
It is the only module that mutates balances, ensuring every change is checked
against the AuthorizationRegistry and recorded.

Key responsibilities:
    - Implements GatewayView protocol for safe read-only access by pure functions
    - Gates every balance mutation on BOTH sides: the recorded source and the
      recorded destination must be authorized (the reserve side of
      issue/redeem is exempt because it is not an identity)
    - Maintains balances and total supply (conservation)
    - Tracks logical time and keeps an append-only transaction log
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple, Any

from .core import (
    # Types
    Identity, Balances, Transaction, HopKind,
    Issue, Redeem, Transfer, LedgerHop,
    # Exceptions
    GatewayError, SourceNotAuthorized, DestinationNotAuthorized,
    InsufficientBalance,
    # Helper functions
    validate_amount, validate_identity,
)
from .registry import AuthorizationRegistry


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Point-in-time copy of everything a GatedLedger mutates."""
    balances: Tuple[Tuple[Identity, int], ...]
    total_supply: int
    log_length: int
    next_sequence: int
    current_time: datetime


class GatedLedger:
    """
    Fungible ledger whose issuance, redemption and transfers are gated.

    Implements the GatewayView protocol, allowing the ledger to be passed to
    pure functions (such as the composition analyzer) that only read.

    Design Principles:
        - Dual-sided gating: source and destination are checked independently,
          source first. An unauthorized identity's balance, however it arose,
          can never be moved or redeemed.
        - Check-then-mutate: no state changes until every check has passed.
        - Always logs: every applied mutation is appended to transaction_log.
        - The ledger knows nothing of call chains; it judges only the immediate
          source/destination pair. `via` is recorded, never checked.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own GatedLedger instance.

    Example:
        registry = AuthorizationRegistry()
        ledger = GatedLedger("main", registry)
        registry.grant("alice")
        registry.grant("bob")

        ledger.issue("alice", 100)
        ledger.transfer("alice", "bob", 40)
        ledger.balance_of("bob")   # 40
    """

    def __init__(
        self,
        name: str,
        registry: Optional[AuthorizationRegistry] = None,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            registry: Authorization registry to consult (a fresh empty one if omitted)
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print applied and rejected operations (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        self.name = name
        self.registry = registry if registry is not None else AuthorizationRegistry()
        self.balances: Balances = {}
        self.transaction_log: List[Transaction] = []
        self._total_supply: int = 0
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        # Monotonic sequence counter for execution ordering
        self._next_sequence: int = 0
        # Batch id stamped on records; set by the orchestrator while a batch runs
        self.active_batch: Optional[str] = None

    # ========================================================================
    # GatewayView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def is_authorized(self, identity: Identity) -> bool:
        """Delegate to the registry."""
        return self.registry.is_authorized(identity)

    def balance_of(self, identity: Identity) -> int:
        """
        Get the ledger balance of an identity.

        Returns 0 for identities that never held a balance.
        """
        return self.balances.get(identity, 0)

    def total_supply(self) -> int:
        """Units issued minus units redeemed."""
        return self._total_supply

    def get_balances(self) -> Balances:
        """Return all non-zero balances."""
        return {i: b for i, b in self.balances.items() if b}

    def list_holders(self) -> Set[Identity]:
        """Return every identity that currently holds a non-zero balance."""
        return {i for i, b in self.balances.items() if b}

    def verify_conservation(self, expected_supply: Optional[int] = None) -> Dict[str, Any]:
        """
        Verify that the sum of all balances equals the total supply.

        The supply counter only moves on issue/redeem and balances only move
        through gated operations, so the two must always agree. A test-mode
        set_balance() is the only way to break this.

        Args:
            expected_supply: Optional externally known supply (e.g. reserve
                             scaled to ledger units) to compare against as well

        Returns:
            Dict with keys:
            - 'valid': bool - True if every check holds
            - 'supply': int - total_supply()
            - 'sum_of_balances': int - sum over all balances
            - 'discrepancies': List[Dict] - details of each violated check

        Example:
            result = ledger.verify_conservation(expected_supply=adapter.reserve * adapter.scale)
            assert result['valid'], result['discrepancies']
        """
        # Sorted summation keeps the result independent of insertion order
        sum_of_balances = sum(self.balances[i] for i in sorted(self.balances))
        discrepancies = []

        if sum_of_balances != self._total_supply:
            discrepancies.append({
                'check': 'balances',
                'expected': self._total_supply,
                'actual': sum_of_balances,
                'difference': sum_of_balances - self._total_supply,
            })

        if expected_supply is not None and expected_supply != self._total_supply:
            discrepancies.append({
                'check': 'supply',
                'expected': expected_supply,
                'actual': self._total_supply,
                'difference': self._total_supply - expected_supply,
            })

        return {
            'valid': len(discrepancies) == 0,
            'supply': self._total_supply,
            'sum_of_balances': sum_of_balances,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # TEST SUPPORT (Mutating)
    # ========================================================================

    def set_balance(self, identity: Identity, amount: int) -> None:
        """
        Set an identity's balance directly.

        WARNING: This bypasses gating and supply accounting and is only
        available in test mode. It models a balance acquired through some
        non-standard path (a direct storage write, an upstream bug) so tests
        can show such a balance stays frozen when its holder is unauthorized.

        Raises:
            GatewayError: If called when test_mode is False
        """
        if not self._test_mode:
            raise GatewayError(
                "set_balance() is disabled in production mode. "
                "Use issue()/transfer() to modify balances. "
                "Set test_mode=True when creating GatedLedger for testing."
            )
        validate_identity(identity)
        validate_amount(amount)
        self.balances[identity] = amount

    # ========================================================================
    # GATED OPERATIONS (Mutating)
    # ========================================================================

    def issue(self, destination: Identity, amount: int, via: Optional[Identity] = None) -> Transaction:
        """
        Credit destination with newly issued units.

        The source is the reserve, which is exempt from the registry check.

        Raises:
            DestinationNotAuthorized: If destination is not authorized
        """
        validate_identity(destination, "destination")
        validate_amount(amount)
        self._require_destination(destination)

        self.balances[destination] = self.balance_of(destination) + amount
        self._total_supply += amount
        return self._record(HopKind.ISSUE, None, destination, amount, via)

    def redeem(self, source: Identity, amount: int, via: Optional[Identity] = None) -> Transaction:
        """
        Debit source and retire the units.

        The destination is the reserve, which is exempt from the registry check.

        Raises:
            SourceNotAuthorized: If source is not authorized
            InsufficientBalance: If source holds fewer than amount units
        """
        validate_identity(source, "source")
        validate_amount(amount)
        self._require_source(source)
        self._require_balance(source, amount)

        self.balances[source] = self.balance_of(source) - amount
        self._total_supply -= amount
        return self._record(HopKind.REDEEM, source, None, amount, via)

    def transfer(
        self,
        source: Identity,
        destination: Identity,
        amount: int,
        via: Optional[Identity] = None
    ) -> Transaction:
        """
        Move units from source to destination.

        Checks run in order source, destination, balance; the first failure
        is raised and nothing is mutated.

        Raises:
            SourceNotAuthorized: If source is not authorized
            DestinationNotAuthorized: If destination is not authorized
            InsufficientBalance: If source holds fewer than amount units
        """
        validate_identity(source, "source")
        validate_identity(destination, "destination")
        validate_amount(amount)
        self._require_source(source)
        self._require_destination(destination)
        self._require_balance(source, amount)

        self.balances[source] = self.balance_of(source) - amount
        self.balances[destination] = self.balance_of(destination) + amount
        return self._record(HopKind.TRANSFER, source, destination, amount, via)

    def apply(self, hop: LedgerHop, via: Optional[Identity] = None) -> Transaction:
        """
        Apply an Issue, Redeem or Transfer hop.

        The hop's own `via` wins over the `via` argument.
        """
        if not isinstance(hop, (Issue, Redeem, Transfer)):
            raise ValueError(f"GatedLedger cannot apply {hop!r}")
        caller = hop.via if hop.via is not None else via
        if isinstance(hop, Issue):
            return self.issue(hop.destination, hop.amount, via=caller)
        if isinstance(hop, Redeem):
            return self.redeem(hop.source, hop.amount, via=caller)
        return self.transfer(hop.source, hop.destination, hop.amount, via=caller)

    # ========================================================================
    # CHECKS
    # ========================================================================

    def _require_source(self, source: Identity) -> None:
        if not self.registry.is_authorized(source):
            self._reject(SourceNotAuthorized(source))

    def _require_destination(self, destination: Identity) -> None:
        if not self.registry.is_authorized(destination):
            self._reject(DestinationNotAuthorized(destination))

    def _require_balance(self, source: Identity, amount: int) -> None:
        available = self.balance_of(source)
        if available < amount:
            self._reject(InsufficientBalance(source, amount, available))

    def _reject(self, error: GatewayError) -> None:
        if self.verbose:
            print(f"✗ REJECTED: {error}")
        raise error

    # ========================================================================
    # RECORDING
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}
        This is globally unique and monotonically increasing within a ledger.
        """
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def _record(
        self,
        kind: HopKind,
        source: Optional[Identity],
        destination: Optional[Identity],
        amount: int,
        via: Optional[Identity],
    ) -> Transaction:
        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            kind=kind,
            source=source,
            destination=destination,
            amount=amount,
            initiator=via,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            batch_id=self.active_batch,
        )
        # Log transaction (always - audit trail is mandatory)
        self.transaction_log.append(tx)
        if self.verbose:
            print(f"✓ {tx!r}")
        return tx

    # ========================================================================
    # ROLLBACK SUPPORT
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        """Capture balances, supply, log position and clock."""
        return LedgerSnapshot(
            balances=tuple(self.balances.items()),
            total_supply=self._total_supply,
            log_length=len(self.transaction_log),
            next_sequence=self._next_sequence,
            current_time=self._current_time,
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        """
        Put the ledger back exactly as it was when snapshot was taken.

        Transactions appended since the snapshot are discarded; they never
        happened as far as the audit trail is concerned.
        """
        self.balances = dict(snapshot.balances)
        self._total_supply = snapshot.total_supply
        del self.transaction_log[snapshot.log_length:]
        self._next_sequence = snapshot.next_sequence
        self._current_time = snapshot.current_time

    def __repr__(self) -> str:
        return (
            f"GatedLedger({self.name!r}, supply={self._total_supply}, "
            f"holders={len(self.list_holders())}, txs={len(self.transaction_log)})"
        )
