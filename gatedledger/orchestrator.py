"""
orchestrator.py - Atomic multi-hop batch execution

Stands in for an external multi-step dispatcher: it executes a Batch of hops
on behalf of callers, acting as the immediate caller of every hop, and makes
the whole batch all-or-nothing.

    Batch([Wrap("alice", 100), Transfer("alice", "vault", 100)])

    1. Snapshot registry, ledger, adapter, value source, collaborators
    2. Apply each hop in order (the orchestrator is recorded as `via`)
    3. On any failure: restore every snapshot, tag the error with its hop
       index, re-raise it unchanged

The orchestrator holds no privilege. It is never consulted by the registry
unless a hop records it as a source or destination, in which case it is
gated like any other identity.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from .core import (
    Identity, Hop, Transaction, Snapshottable,
    Issue, Redeem, Transfer, Wrap, Unwrap, Grant, Revoke, Call,
    DEFAULT_ORCHESTRATOR, GatewayError, validate_identity,
)
from .adapter import WrapAdapter
from .ledger import GatedLedger


@dataclass(frozen=True, slots=True)
class Batch:
    """
    An ordered, immutable sequence of hops to execute atomically.

    Attributes:
        hops: The hops, applied in order
        initiator: Recorded as `via` on hops that don't name their own
                   (default: the executing orchestrator's identity)
    """
    hops: Tuple[Hop, ...]
    initiator: Optional[Identity] = None

    def __post_init__(self):
        object.__setattr__(self, 'hops', tuple(self.hops))
        if self.initiator is not None:
            validate_identity(self.initiator, "initiator")

    def needs_adapter(self) -> bool:
        return any(isinstance(h, (Wrap, Unwrap)) for h in self.hops)

    def __len__(self) -> int:
        return len(self.hops)

    def __repr__(self) -> str:
        return f"Batch({len(self.hops)} hops, initiator={self.initiator})"


@dataclass(frozen=True, slots=True)
class BatchResult:
    """
    Outcome of a successfully executed batch.

    Attributes:
        batch_id: Identifier stamped on every Transaction the batch produced
        transactions: Ledger records produced, in order
        results: Per-hop return values (Transaction, None for grant/revoke,
                 whatever a Call returned)
    """
    batch_id: str
    transactions: Tuple[Transaction, ...]
    results: Tuple[Any, ...] = field(default=())


class Orchestrator:
    """
    Executes batches of hops as single all-or-nothing units.

    Thread Safety:
        Not thread-safe, like the ledger it drives.

    Example:
        orchestrator = Orchestrator(ledger, adapter)
        orchestrator.execute(Batch([
            Wrap("alice", 100),
            Transfer("alice", "bob", 100),
        ]))
    """

    def __init__(
        self,
        ledger: GatedLedger,
        adapter: Optional[WrapAdapter] = None,
        identity: Identity = DEFAULT_ORCHESTRATOR,
        collaborators: Sequence[Snapshottable] = (),
        verbose: Optional[bool] = None,
    ):
        """
        Create an orchestrator.

        Args:
            ledger: Ledger the hops apply to
            adapter: Needed for Wrap/Unwrap hops
            identity: Recorded as the caller of hops
            collaborators: Extra state (e.g. a lending protocol) rolled back
                           together with the ledger when a batch fails
            verbose: Print batch outcomes (default: follow the ledger)
        """
        if adapter is not None and adapter.ledger is not ledger:
            raise ValueError("adapter is bound to a different ledger")
        for collaborator in collaborators:
            if not isinstance(collaborator, Snapshottable):
                raise ValueError(f"{collaborator!r} does not support snapshot/restore")
        self.ledger = ledger
        self.adapter = adapter
        self.identity = validate_identity(identity)
        self.collaborators: Tuple[Snapshottable, ...] = tuple(collaborators)
        self.verbose = ledger.verbose if verbose is None else verbose
        self._next_batch = 0

    def execute(self, batch: Batch) -> BatchResult:
        """
        Execute every hop of batch, or none of them.

        Returns:
            BatchResult with the records produced

        Raises:
            ValueError: If the batch needs an adapter this orchestrator lacks,
                        or the adapter's value source cannot be rolled back
                        (raised before any hop runs)
            The first hop's error, unchanged, after every component has been
            restored. GatewayErrors carry hop_index.
        """
        self._check_batch(batch)
        batch_id = f"batch:{self.ledger.name}:{self.identity}:{self._next_batch:012d}"
        self._next_batch += 1
        caller = batch.initiator or self.identity

        checkpoints = self._snapshot()
        enclosing_batch = self.ledger.active_batch
        self.ledger.active_batch = batch_id
        transactions: List[Transaction] = []
        results: List[Any] = []
        try:
            for index, hop in enumerate(batch.hops):
                try:
                    result = self._dispatch(hop, caller)
                except Exception as exc:
                    self._restore(checkpoints)
                    if isinstance(exc, GatewayError):
                        exc.hop_index = index
                    if self.verbose:
                        print(f"✗ ABORTED {batch_id} at hop {index} {hop!r}: {exc}")
                    raise
                results.append(result)
                if isinstance(result, Transaction):
                    transactions.append(result)
        finally:
            # A batch run from a Call hop hands the ledger back to its caller
            self.ledger.active_batch = enclosing_batch

        if self.verbose:
            print(f"✓ APPLIED {batch_id}: {len(batch.hops)} hops, {len(transactions)} transactions")
        return BatchResult(
            batch_id=batch_id,
            transactions=tuple(transactions),
            results=tuple(results),
        )

    def _check_batch(self, batch: Batch) -> None:
        if not batch.needs_adapter():
            return
        if self.adapter is None:
            raise ValueError("batch contains wrap/unwrap hops but no adapter is configured")
        if not isinstance(self.adapter.value_source, Snapshottable):
            raise ValueError(
                "batch contains wrap/unwrap hops but the value source cannot be rolled back"
            )

    def _dispatch(self, hop: Hop, caller: Identity) -> Any:
        if isinstance(hop, (Issue, Redeem, Transfer)):
            return self.ledger.apply(hop, via=caller)
        if isinstance(hop, Wrap):
            return self.adapter.wrap(hop.identity, hop.amount, via=hop.via or caller)
        if isinstance(hop, Unwrap):
            return self.adapter.unwrap(hop.identity, hop.units, via=hop.via or caller)
        if isinstance(hop, Grant):
            self.ledger.registry.grant(hop.identity)
            return None
        if isinstance(hop, Revoke):
            self.ledger.registry.revoke(hop.identity)
            return None
        if isinstance(hop, Call):
            return hop.fn(*hop.args)
        raise ValueError(f"Unknown hop {hop!r}")

    # ========================================================================
    # ROLLBACK
    # ========================================================================

    def _participants(self) -> List[Any]:
        participants: List[Any] = [self.ledger.registry, self.ledger]
        if self.adapter is not None:
            participants.append(self.adapter)
            if isinstance(self.adapter.value_source, Snapshottable):
                participants.append(self.adapter.value_source)
        for collaborator in self.collaborators:
            if all(collaborator is not p for p in participants):
                participants.append(collaborator)
        return participants

    def _snapshot(self) -> List[Tuple[Any, Any]]:
        return [(p, p.snapshot()) for p in self._participants()]

    @staticmethod
    def _restore(checkpoints: List[Tuple[Any, Any]]) -> None:
        for participant, state in reversed(checkpoints):
            participant.restore(state)

    def __repr__(self) -> str:
        return f"Orchestrator({self.identity}, ledger={self.ledger.name})"
