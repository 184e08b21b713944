"""
gatedledger - Access-Controlled Value-Transfer Gateway

A fungible ledger wrapping an external value source in which every issuance,
redemption and transfer requires BOTH the source and the destination to hold
an authorization credential.

Usage:
    from gatedledger import (
        AuthorizationRegistry, GatedLedger, InMemoryValueSource, WrapAdapter,
        Orchestrator, Batch, Wrap, Transfer,
    )

    registry = AuthorizationRegistry()
    ledger = GatedLedger("main", registry)
    source = InMemoryValueSource("wrapper", {"alice": 1000})
    adapter = WrapAdapter(ledger, source)

    registry.grant("alice")
    registry.grant("bob")

    # Wrap external value into ledger units (alice must be authorized)
    source.approve("alice", 100)
    adapter.wrap("alice", 100)

    # Transfer between authorized identities
    ledger.transfer("alice", "bob", 40)

    # Compose hops atomically through an orchestrator
    orchestrator = Orchestrator(ledger, adapter)
    orchestrator.execute(Batch([Transfer("bob", "alice", 40)]))
"""

# Core types
from .core import (
    GatewayView,
    Snapshottable,
    Identity,
    Balances,
    Side,
    HopKind,
    Hop,
    LedgerHop,
    Issue,
    Redeem,
    Transfer,
    Wrap,
    Unwrap,
    Grant,
    Revoke,
    Call,
    Transaction,
    GatewayError,
    AuthorizationError,
    SourceNotAuthorized,
    DestinationNotAuthorized,
    InsufficientBalance,
    validate_amount,
    validate_identity,
    RESERVE_LABEL,
    DEFAULT_DECIMALS,
    DEFAULT_ORCHESTRATOR,
    DEFAULT_ADAPTER,
)

# Registry
from .registry import AuthorizationRegistry

# Ledger
from .ledger import GatedLedger, LedgerSnapshot

# External value source
from .value_source import (
    ValueSource,
    InMemoryValueSource,
    ValueSourceError,
    InsufficientExternalBalance,
    InsufficientAllowance,
)

# Wrap/Unwrap
from .adapter import WrapAdapter

# Batches
from .orchestrator import Batch, BatchResult, Orchestrator

# Composition rules
from .composition import (
    Requirement,
    IntermediaryReport,
    CompositionReport,
    parties,
    required_authorizations,
    classify_intermediaries,
    analyze,
)

__all__ = [
    # Core
    'GatewayView', 'Snapshottable', 'Identity', 'Balances', 'Side', 'HopKind',
    'Hop', 'LedgerHop', 'Issue', 'Redeem', 'Transfer', 'Wrap', 'Unwrap',
    'Grant', 'Revoke', 'Call', 'Transaction',
    'GatewayError', 'AuthorizationError', 'SourceNotAuthorized',
    'DestinationNotAuthorized', 'InsufficientBalance',
    'validate_amount', 'validate_identity',
    'RESERVE_LABEL', 'DEFAULT_DECIMALS', 'DEFAULT_ORCHESTRATOR', 'DEFAULT_ADAPTER',
    # Registry
    'AuthorizationRegistry',
    # Ledger
    'GatedLedger', 'LedgerSnapshot',
    # Value source
    'ValueSource', 'InMemoryValueSource', 'ValueSourceError',
    'InsufficientExternalBalance', 'InsufficientAllowance',
    # Adapter
    'WrapAdapter',
    # Orchestrator
    'Batch', 'BatchResult', 'Orchestrator',
    # Composition
    'Requirement', 'IntermediaryReport', 'CompositionReport',
    'parties', 'required_authorizations', 'classify_intermediaries', 'analyze',
]

__version__ = '1.0.0'
