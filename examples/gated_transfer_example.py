"""
Example: Wrapping, gated transfers and composed batches.

Walks through the four canonical situations of the gateway: a transfer
between authorized users, a transfer to an unauthorized user, a balance
frozen by revocation, and a relay versus a transient holder inside an
orchestrated batch.
"""

from datetime import datetime
from gatedledger import (
    AuthorizationRegistry, GatedLedger, InMemoryValueSource, WrapAdapter,
    Orchestrator, Batch, Transfer, Grant, Revoke, GatewayError, analyze,
)


def main():
    print("=" * 80)
    print("GATED LEDGER - Dual-Sided Authorization Example")
    print("=" * 80)
    print()

    registry = AuthorizationRegistry(verbose=True)
    ledger = GatedLedger("demo", registry, initial_time=datetime(2025, 1, 1), verbose=True)
    source = InMemoryValueSource("wrapper", {"U1": 1_000, "U2": 1_000, "U3": 1_000}, symbol="USDX")
    adapter = WrapAdapter(ledger, source)
    orchestrator = Orchestrator(ledger, adapter)

    print("Example 1: Wrap and transfer between authorized users")
    print("-" * 80)
    registry.grant("U1")
    registry.grant("U2")
    source.approve("U1", 100)
    adapter.wrap("U1", 100)
    ledger.transfer("U1", "U2", 100)
    print()
    print(f"U1 balance: {ledger.balance_of('U1')}")
    print(f"U2 balance: {ledger.balance_of('U2')}")
    print(f"Reserve:    {adapter.reserve} {source.symbol}")
    print()

    print("Example 2: Transfer to an unauthorized user")
    print("-" * 80)
    try:
        ledger.transfer("U2", "U3", 50)
    except GatewayError as e:
        print(f"Caught {type(e).__name__}: {e}")
    print(f"U2 balance unchanged: {ledger.balance_of('U2')}")
    print()

    print("Example 3: Revocation freezes a balance")
    print("-" * 80)
    registry.grant("U3")
    ledger.transfer("U2", "U3", 50)
    registry.revoke("U3")
    try:
        ledger.transfer("U3", "U1", 50)
    except GatewayError as e:
        print(f"Caught {type(e).__name__}: {e}")
    print(f"U3 balance frozen at: {ledger.balance_of('U3')}")
    print()

    print("Example 4: Relays and transient holders")
    print("-" * 80)
    print("M only calls the hops: it is a relay and needs no credential.")
    orchestrator.execute(Batch([Transfer("U2", "U1", 50, via="M")], initiator="M"))
    print()

    print("M holds the balance between two hops and is revoked in between:")
    hops = [Grant("M"), Transfer("U1", "M", 50), Revoke("M"), Transfer("M", "U2", 50)]
    report = analyze(ledger, hops)
    print(f"  analyzer predicts failure at hop {report.failed_hop}: {report.error}")
    print(f"  holders: {sorted(report.holders)}")
    try:
        orchestrator.execute(Batch(hops))
    except GatewayError as e:
        print(f"  batch aborted at hop {e.hop_index}: {e}")
    print()

    print("=" * 80)
    print("SUMMARY")
    print("=" * 80)
    print(f"Balances: {ledger.get_balances()}")
    conservation = ledger.verify_conservation(expected_supply=adapter.reserve * adapter.scale)
    print(f"Conservation holds: {conservation['valid']}")
    print(f"Fully backed:       {adapter.verify_backing()['valid']}")
    print()


if __name__ == "__main__":
    main()
