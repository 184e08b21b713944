"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the gated ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Sum of balances equals supply; supply is fully backed
2. atomicity.py - All-or-nothing batch semantics
3. dual_gate.py - Both recorded sides authorized; relays never checked
4. idempotency.py - Repeated grant/revoke converge
5. determinism.py - Reproducible behavior
6. composition_agreement.py - The analyzer predicts what the orchestrator does

These tests use hypothesis for property-based testing.
"""
