"""
value_source.py - External value source consumed by the wrap/unwrap adapter

The adapter only needs two calls from whatever holds the backing value:

    pull(source, amount)       debit source, credit the holder (the adapter)
    push(destination, amount)  debit the holder, credit destination

Classes:
- ValueSource: Protocol defining that interface
- InMemoryValueSource: Balance/allowance book used in tests and examples

Errors raised here are upstream faults from the gateway's point of view.
They are NOT GatewayError subclasses: the adapter and the
orchestrator propagate them unchanged and never interpret them.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from .core import Identity, DEFAULT_DECIMALS, validate_amount, validate_identity


class ValueSourceError(Exception):
    """Base exception for failures inside the external value source."""
    pass


class InsufficientExternalBalance(ValueSourceError):
    """Raised when a pull or push exceeds the debited account's balance."""
    pass


class InsufficientAllowance(ValueSourceError):
    """Raised when a pull exceeds what the owner approved for the holder."""
    pass


@runtime_checkable
class ValueSource(Protocol):
    """
    Protocol for external value sources.

    Implementations must move value between an account and the holder
    (the adapter's account) and raise on failure. Nothing else is assumed.
    """

    def pull(self, source: Identity, amount: int) -> None:
        """Move amount from source into the holder's account."""
        ...

    def push(self, destination: Identity, amount: int) -> None:
        """Move amount from the holder's account to destination."""
        ...


@dataclass(frozen=True, slots=True)
class ValueSourceSnapshot:
    balances: Tuple[Tuple[Identity, int], ...]
    allowances: Tuple[Tuple[Identity, int], ...]
    total_supply: int


class InMemoryValueSource:
    """
    Value source backed by plain dictionaries.

    Every pull is made on behalf of a single holder (the adapter), so
    allowances are tracked per owner only.

    Example:
        source = InMemoryValueSource("wrapper", {"alice": 1_000})
        source.approve("alice", 100)
        source.pull("alice", 100)
        source.balance_of("wrapper")   # 100
    """

    def __init__(
        self,
        holder: Identity,
        balances: Optional[Dict[Identity, int]] = None,
        symbol: str = "VAL",
        decimals: int = DEFAULT_DECIMALS,
        require_allowance: bool = True,
    ):
        """
        Initialize the book.

        Args:
            holder: Account that receives pulls and funds pushes
            balances: Initial balances (counted into total supply)
            symbol: Display symbol
            decimals: Precision the amounts are expressed in
            require_allowance: If False, pulls skip the allowance check
        """
        self.holder = validate_identity(holder, "holder")
        self.symbol = symbol
        self.decimals = decimals
        self.require_allowance = require_allowance
        self._balances: Dict[Identity, int] = {}
        self._allowances: Dict[Identity, int] = {}
        self._total_supply = 0
        for identity, amount in (balances or {}).items():
            self.mint(identity, amount)

    def balance_of(self, identity: Identity) -> int:
        return self._balances.get(identity, 0)

    def allowance(self, owner: Identity) -> int:
        """Amount the holder may still pull from owner."""
        return self._allowances.get(owner, 0)

    def total_supply(self) -> int:
        return self._total_supply

    def mint(self, identity: Identity, amount: int) -> None:
        """Create external value out of thin air (test funding)."""
        validate_identity(identity)
        validate_amount(amount)
        self._balances[identity] = self.balance_of(identity) + amount
        self._total_supply += amount

    def approve(self, owner: Identity, amount: int) -> None:
        """Let the holder pull up to amount from owner (overwrites)."""
        validate_identity(owner, "owner")
        validate_amount(amount)
        self._allowances[owner] = amount

    def pull(self, source: Identity, amount: int) -> None:
        validate_identity(source, "source")
        validate_amount(amount)
        if self.require_allowance and source != self.holder:
            allowed = self.allowance(source)
            if allowed < amount:
                raise InsufficientAllowance(
                    f"{self.symbol}: {source} approved {allowed}, pull of {amount}"
                )
        self._move(source, self.holder, amount)
        if self.require_allowance and source != self.holder:
            self._allowances[source] -= amount

    def push(self, destination: Identity, amount: int) -> None:
        validate_identity(destination, "destination")
        validate_amount(amount)
        self._move(self.holder, destination, amount)

    def _move(self, source: Identity, destination: Identity, amount: int) -> None:
        available = self.balance_of(source)
        if available < amount:
            raise InsufficientExternalBalance(
                f"{self.symbol}: {source} holds {available}, needs {amount}"
            )
        self._balances[source] = available - amount
        self._balances[destination] = self.balance_of(destination) + amount

    def snapshot(self) -> ValueSourceSnapshot:
        return ValueSourceSnapshot(
            balances=tuple(self._balances.items()),
            allowances=tuple(self._allowances.items()),
            total_supply=self._total_supply,
        )

    def restore(self, snapshot: ValueSourceSnapshot) -> None:
        self._balances = dict(snapshot.balances)
        self._allowances = dict(snapshot.allowances)
        self._total_supply = snapshot.total_supply

    def __repr__(self):
        return f"InMemoryValueSource({self.symbol}, holder={self.holder}, supply={self._total_supply})"
