"""
composition.py - Authorization rules for composed hop sequences

The ledger judges one hop at a time; it has no notion of a chain. This module
states, as pure functions over a read-only GatewayView, what that hop-by-hop
judgement implies for a whole sequence executed atomically:

    A sequence succeeds iff, at every hop, each RECORDED party (source of a
    debit, destination of a credit) is authorized at that moment and every
    debit is covered by the balance held at that moment.

Consequences worth spelling out:
    - A relay, an identity that only appears as the caller (`via`) of hops,
      never needs authorization.
    - A holder, an intermediary recorded as destination of hop i and source
      of a later hop j, must be authorized at hop i (to receive) AND at hop j
      (to send). Revoking it in between freezes the balance in transit.
    - The reserve side of issue/redeem/wrap/unwrap is never checked.

Nothing here mutates state: analyze() runs the sequence against a
copy-on-write overlay of the view.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from .core import (
    Identity, Side, Hop, GatewayView,
    Issue, Redeem, Transfer, Wrap, Unwrap, Grant, Revoke, Call,
    GatewayError, SourceNotAuthorized, DestinationNotAuthorized,
    InsufficientBalance,
)


@dataclass(frozen=True, slots=True)
class Requirement:
    """identity must be authorized, on side, when hop hop_index runs."""
    hop_index: int
    side: Side
    identity: Identity


@dataclass(frozen=True, slots=True)
class IntermediaryReport:
    """
    Attributes:
        relays: Identities that only ever call hops; never need authorization
        holders: Identities that receive and later send within the sequence;
                 must be authorized while they hold
    """
    relays: FrozenSet[Identity]
    holders: FrozenSet[Identity]


@dataclass(frozen=True)
class CompositionReport:
    """
    Predicted outcome of executing a hop sequence atomically.

    Attributes:
        succeeds: True if every hop would pass
        failed_hop: Index of the first failing hop (None on success)
        error: The error that hop would raise (None on success)
        requirements: Every authorization the sequence depends on, in order
        relays / holders: See IntermediaryReport
        final_balances: Balances of every touched identity after the sequence
                        (pre-sequence balances when it fails, as it would roll back)
    """
    succeeds: bool
    failed_hop: Optional[int]
    error: Optional[GatewayError]
    requirements: Tuple[Requirement, ...]
    relays: FrozenSet[Identity]
    holders: FrozenSet[Identity]
    final_balances: Dict[Identity, int] = field(default_factory=dict)


def parties(hop: Hop) -> Tuple[Tuple[Side, Identity], ...]:
    """
    Return the (side, identity) pairs hop records, in the ledger's check order.

    Grant/Revoke record nobody. Call hops are opaque and raise ValueError.
    """
    if isinstance(hop, Transfer):
        return ((Side.SOURCE, hop.source), (Side.DESTINATION, hop.destination))
    if isinstance(hop, Issue):
        return ((Side.DESTINATION, hop.destination),)
    if isinstance(hop, Wrap):
        return ((Side.DESTINATION, hop.identity),)
    if isinstance(hop, Redeem):
        return ((Side.SOURCE, hop.source),)
    if isinstance(hop, Unwrap):
        return ((Side.SOURCE, hop.identity),)
    if isinstance(hop, (Grant, Revoke)):
        return ()
    if isinstance(hop, Call):
        raise ValueError(f"{hop!r} is opaque: its recorded parties are unknown")
    raise ValueError(f"Unknown hop {hop!r}")


def required_authorizations(hops: Iterable[Hop]) -> Tuple[Requirement, ...]:
    """Every (hop, side, identity) authorization the sequence depends on."""
    return tuple(
        Requirement(index, side, identity)
        for index, hop in enumerate(hops)
        for side, identity in parties(hop)
    )


def classify_intermediaries(
    hops: Sequence[Hop],
    initiator: Optional[Identity] = None,
) -> IntermediaryReport:
    """
    Split the non-endpoint participants of a sequence into relays and holders.

    Args:
        hops: The sequence
        initiator: Default caller of hops without their own `via`
                   (the batch initiator or orchestrator identity)
    """
    callers: Set[Identity] = set()
    recorded: Set[Identity] = set()
    received: Set[Identity] = set()
    holders: Set[Identity] = set()

    for hop in hops:
        via = getattr(hop, 'via', None) or initiator
        if via is not None and not isinstance(hop, (Grant, Revoke)):
            callers.add(via)
        for side, identity in parties(hop):
            recorded.add(identity)
            if side is Side.SOURCE and identity in received:
                holders.add(identity)
        for side, identity in parties(hop):
            if side is Side.DESTINATION:
                received.add(identity)

    return IntermediaryReport(
        relays=frozenset(callers - recorded),
        holders=frozenset(holders),
    )


class _Overlay:
    """Copy-on-write view: reads fall through to the base view."""

    def __init__(self, view: GatewayView):
        self._view = view
        self.flags: Dict[Identity, bool] = {}
        self.balances: Dict[Identity, int] = {}

    def is_authorized(self, identity: Identity) -> bool:
        if identity in self.flags:
            return self.flags[identity]
        return self._view.is_authorized(identity)

    def balance_of(self, identity: Identity) -> int:
        if identity in self.balances:
            return self.balances[identity]
        return self._view.balance_of(identity)

    def credit(self, identity: Identity, amount: int) -> None:
        self.balances[identity] = self.balance_of(identity) + amount

    def debit(self, identity: Identity, amount: int) -> None:
        self.balances[identity] = self.balance_of(identity) - amount


def _check(overlay: _Overlay, hop: Hop, scale: int) -> Optional[GatewayError]:
    # The adapter converts units before any ledger check runs
    if isinstance(hop, Unwrap) and hop.units % scale:
        raise ValueError(
            f"{hop.units} ledger units is not a multiple of scale {scale}"
        )
    for side, identity in parties(hop):
        if not overlay.is_authorized(identity):
            if side is Side.SOURCE:
                return SourceNotAuthorized(identity)
            return DestinationNotAuthorized(identity)

    debit = _debit_of(hop)
    if debit is not None:
        source, amount = debit
        available = overlay.balance_of(source)
        if available < amount:
            return InsufficientBalance(source, amount, available)
    return None


def _debit_of(hop: Hop) -> Optional[Tuple[Identity, int]]:
    if isinstance(hop, Transfer):
        return hop.source, hop.amount
    if isinstance(hop, Redeem):
        return hop.source, hop.amount
    if isinstance(hop, Unwrap):
        return hop.identity, hop.units
    return None


def _apply(overlay: _Overlay, hop: Hop, scale: int) -> None:
    if isinstance(hop, Transfer):
        overlay.debit(hop.source, hop.amount)
        overlay.credit(hop.destination, hop.amount)
    elif isinstance(hop, Issue):
        overlay.credit(hop.destination, hop.amount)
    elif isinstance(hop, Wrap):
        overlay.credit(hop.identity, hop.amount * scale)
    elif isinstance(hop, Redeem):
        overlay.debit(hop.source, hop.amount)
    elif isinstance(hop, Unwrap):
        overlay.debit(hop.identity, hop.units)
    elif isinstance(hop, Grant):
        overlay.flags[hop.identity] = True
    elif isinstance(hop, Revoke):
        overlay.flags[hop.identity] = False


def analyze(
    view: GatewayView,
    hops: Sequence[Hop],
    scale: int = 1,
    initiator: Optional[Identity] = None,
) -> CompositionReport:
    """
    Predict whether hops, executed atomically against view, would succeed.

    Checks follow the ledger's order (source, destination, balance) and stop
    at the first failing hop. External value-source failures are not modelled:
    every Wrap is assumed to find the external value it pulls. An Unwrap whose
    units are not a multiple of scale raises ValueError at its position, as
    the adapter would.

    Args:
        view: Current state (a GatedLedger or any GatewayView)
        hops: Sequence to evaluate; Call hops are rejected
        scale: Adapter scale applied to Wrap amounts
        initiator: Default caller for intermediary classification

    Returns:
        CompositionReport

    Raises:
        ValueError: If hops contains a Call, or an Unwrap of units that are not
                    a multiple of scale is reached before any failing hop
    """
    hops = tuple(hops)
    requirements = required_authorizations(hops)
    intermediaries = classify_intermediaries(hops, initiator)
    touched: List[Identity] = []
    for requirement in requirements:
        if requirement.identity not in touched:
            touched.append(requirement.identity)

    overlay = _Overlay(view)
    for index, hop in enumerate(hops):
        error = _check(overlay, hop, scale)
        if error is not None:
            error.hop_index = index
            return CompositionReport(
                succeeds=False,
                failed_hop=index,
                error=error,
                requirements=requirements,
                relays=intermediaries.relays,
                holders=intermediaries.holders,
                final_balances={i: view.balance_of(i) for i in touched},
            )
        _apply(overlay, hop, scale)

    return CompositionReport(
        succeeds=True,
        failed_hop=None,
        error=None,
        requirements=requirements,
        relays=intermediaries.relays,
        holders=intermediaries.holders,
        final_balances={i: overlay.balance_of(i) for i in touched},
    )
