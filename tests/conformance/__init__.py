"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the settlement engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Pool accounting and payout conservation
2. atomicity.py - Failed operations leave no partial effect
3. idempotency.py - Exactly-once resolution and claims
4. determinism.py - Reproducible ids, payouts and notifications
5. temporal.py - Deadline boundaries and state-machine ordering
6. concurrency.py - Per-market linearizability under threads

These tests use hypothesis for property-based testing.
"""
