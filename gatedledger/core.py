"""
Core types and pure functions for the gated ledger.

This module provides the foundational data structures and protocols:
1. Protocols: GatewayView for read-only access to balances and authorization
2. Immutable hop variants: Issue, Redeem, Transfer, Wrap, Unwrap, Grant, Revoke, Call
3. The executed Transaction record
4. Exceptions: GatewayError and the authorization/balance error taxonomy
5. Type aliases and constants

Nothing in this module mutates state. The reserve backing the ledger is never
represented as an identity: issuance and redemption are distinct hop variants,
so no sentinel address can ever satisfy or fail an authorization check.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    Any, Callable, ClassVar, Dict, Optional, Protocol, Tuple, Union,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Label used in records and messages for the implicit reserve side of
# issue/redeem. It is a display label only, never a registry key.
RESERVE_LABEL = "reserve"

# Default precision of ledger units and of the external value source.
DEFAULT_DECIMALS = 18

# Default identities of the in-process collaborators.
DEFAULT_ORCHESTRATOR = "orchestrator"
DEFAULT_ADAPTER = "wrapper"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque participant reference (an account address in practice).
Identity = str

# Mapping from identity to ledger units held.
Balances = Dict[Identity, int]


# ============================================================================
# ENUMS
# ============================================================================

class Side(Enum):
    """Which side of a balance mutation an identity is recorded on."""
    SOURCE = "source"
    DESTINATION = "destination"


class HopKind(Enum):
    """Classification of a hop within a composed sequence."""
    ISSUE = "issue"
    REDEEM = "redeem"
    TRANSFER = "transfer"
    WRAP = "wrap"
    UNWRAP = "unwrap"
    GRANT = "grant"
    REVOKE = "revoke"
    CALL = "call"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class GatewayView(Protocol):
    """
    Read-only interface to gateway state.

    The composition analyzer and tests take a GatewayView so they can reason
    about balances and authorization without the ability to change them.
    GatedLedger implements this protocol; tests.fake_view.FakeView provides a
    plain-dict implementation.
    """

    def is_authorized(self, identity: Identity) -> bool:
        """Return True if identity currently holds the credential."""
        ...

    def balance_of(self, identity: Identity) -> int:
        """Return identity's ledger balance (0 if it never held any)."""
        ...

    def total_supply(self) -> int:
        """Return the number of ledger units outstanding."""
        ...


@runtime_checkable
class Snapshottable(Protocol):
    """Anything whose state can be captured and put back wholesale."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


# ============================================================================
# EXCEPTIONS
# ============================================================================

class GatewayError(Exception):
    """
    Base exception for all gateway errors.

    hop_index is filled in by the orchestrator when the error aborted a batch,
    so a failure deep inside a composed chain can be traced to its hop.
    """
    hop_index: Optional[int] = None


class AuthorizationError(GatewayError):
    """Raised when a recorded source or destination is not authorized."""
    side: ClassVar[Side]

    def __init__(self, identity: Identity):
        self.identity = identity
        super().__init__(f"{self.side.value} {identity} not authorized")


class SourceNotAuthorized(AuthorizationError):
    """The debited side of a transfer or redemption is not authorized."""
    side = Side.SOURCE


class DestinationNotAuthorized(AuthorizationError):
    """The credited side of a transfer or issuance is not authorized."""
    side = Side.DESTINATION


class InsufficientBalance(GatewayError):
    """Raised when a debit exceeds the source's balance."""

    def __init__(self, identity: Identity, requested: int, available: int):
        self.identity = identity
        self.requested = requested
        self.available = available
        super().__init__(
            f"{identity}: requested {requested}, available {available}"
        )


# ============================================================================
# VALIDATION
# ============================================================================

def validate_amount(amount: Any, what: str = "amount") -> int:
    """
    Check that amount is a non-negative integer and return it.

    bool is rejected even though it subclasses int.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{what} must be int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{what} must be non-negative, got {amount}")
    return amount


def validate_identity(identity: Any, what: str = "identity") -> Identity:
    """Check that identity is a non-empty string and return it."""
    if not isinstance(identity, str) or not identity.strip():
        raise ValueError(f"{what} cannot be empty")
    return identity


def _validate_via(via: Optional[Identity]) -> None:
    if via is not None:
        validate_identity(via, "via")


# ============================================================================
# HOP VARIANTS
# ============================================================================
#
# Each variant is one source/destination-bearing step of a composed sequence.
# `via` names the immediate caller (a relay such as an orchestrator). It is
# recorded for audit and never consulted for authorization.

@dataclass(frozen=True, slots=True)
class Issue:
    """Credit destination with freshly issued units. Source is the reserve."""
    destination: Identity
    amount: int
    via: Optional[Identity] = None
    kind: ClassVar[HopKind] = HopKind.ISSUE

    def __post_init__(self):
        validate_identity(self.destination, "destination")
        validate_amount(self.amount)
        _validate_via(self.via)

    def __repr__(self) -> str:
        return f"Issue({self.amount}: {RESERVE_LABEL}→{self.destination})"


@dataclass(frozen=True, slots=True)
class Redeem:
    """Debit source and retire the units. Destination is the reserve."""
    source: Identity
    amount: int
    via: Optional[Identity] = None
    kind: ClassVar[HopKind] = HopKind.REDEEM

    def __post_init__(self):
        validate_identity(self.source, "source")
        validate_amount(self.amount)
        _validate_via(self.via)

    def __repr__(self) -> str:
        return f"Redeem({self.amount}: {self.source}→{RESERVE_LABEL})"


@dataclass(frozen=True, slots=True)
class Transfer:
    """Move units from source to destination."""
    source: Identity
    destination: Identity
    amount: int
    via: Optional[Identity] = None
    kind: ClassVar[HopKind] = HopKind.TRANSFER

    def __post_init__(self):
        validate_identity(self.source, "source")
        validate_identity(self.destination, "destination")
        validate_amount(self.amount)
        _validate_via(self.via)

    def __repr__(self) -> str:
        return f"Transfer({self.amount}: {self.source}→{self.destination})"


@dataclass(frozen=True, slots=True)
class Wrap:
    """
    Deposit external value and receive ledger units.

    amount is denominated in the external value source's precision.
    """
    identity: Identity
    amount: int
    via: Optional[Identity] = None
    kind: ClassVar[HopKind] = HopKind.WRAP

    def __post_init__(self):
        validate_identity(self.identity)
        validate_amount(self.amount)
        _validate_via(self.via)


@dataclass(frozen=True, slots=True)
class Unwrap:
    """
    Return ledger units and receive external value.

    units is denominated in ledger precision.
    """
    identity: Identity
    units: int
    via: Optional[Identity] = None
    kind: ClassVar[HopKind] = HopKind.UNWRAP

    def __post_init__(self):
        validate_identity(self.identity)
        validate_amount(self.units, "units")
        _validate_via(self.via)


@dataclass(frozen=True, slots=True)
class Grant:
    """Set identity's authorization flag."""
    identity: Identity
    kind: ClassVar[HopKind] = HopKind.GRANT

    def __post_init__(self):
        validate_identity(self.identity)


@dataclass(frozen=True, slots=True)
class Revoke:
    """Clear identity's authorization flag."""
    identity: Identity
    kind: ClassVar[HopKind] = HopKind.REVOKE

    def __post_init__(self):
        validate_identity(self.identity)


@dataclass(frozen=True, slots=True)
class Call:
    """
    An opaque call into an external collaborator (e.g. a lending protocol).

    The collaborator performs its own ledger operations as an ordinary caller,
    so it is subject to the same gating as everyone else.
    """
    fn: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    label: str = ""
    kind: ClassVar[HopKind] = HopKind.CALL

    def __post_init__(self):
        if not callable(self.fn):
            raise ValueError(f"Call fn must be callable, got {self.fn!r}")
        object.__setattr__(self, 'args', tuple(self.args))

    def __repr__(self) -> str:
        name = self.label or getattr(self.fn, '__qualname__', repr(self.fn))
        return f"Call({name})"


Hop = Union[Issue, Redeem, Transfer, Wrap, Unwrap, Grant, Revoke, Call]

# Hops the ledger itself knows how to apply.
LedgerHop = Union[Issue, Redeem, Transfer]


# ============================================================================
# EXECUTED RECORD
# ============================================================================

@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An applied, immutable record of one balance mutation - represents FACT.

    Attributes:
        kind: ISSUE, REDEEM or TRANSFER
        source: Debited identity (None for issuance: the reserve)
        destination: Credited identity (None for redemption: the reserve)
        amount: Ledger units moved
        initiator: Relay that made the call, if any (never authorization-checked)
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that applied this
        execution_time: Logical time of application
        sequence_number: Monotonic sequence within the ledger
        batch_id: Identifier of the enclosing batch, if executed in one
    """
    kind: HopKind
    source: Optional[Identity]
    destination: Optional[Identity]
    amount: int
    initiator: Optional[Identity]
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    batch_id: Optional[str] = field(default=None)

    def parties(self) -> Tuple[Identity, ...]:
        """Identities recorded on either side of this mutation."""
        return tuple(p for p in (self.source, self.destination) if p is not None)

    def __repr__(self) -> str:
        src = self.source if self.source is not None else RESERVE_LABEL
        dst = self.destination if self.destination is not None else RESERVE_LABEL
        via = f" via {self.initiator}" if self.initiator else ""
        return (
            f"Transaction(#{self.sequence_number} {self.kind.name} "
            f"{self.amount}: {src}→{dst}{via})"
        )
