"""
Integration Tests Package

Exercises the ledger through its outer surfaces (HTTP adapter, seeded
classroom state) rather than component by component.

TEST AXIOMS:
=============
1. Determinism: counting clock, fixed identities, no randomness
2. Thin adapter: the API never reinterprets a ledger outcome
3. Explicit failure: every rejection carries its ErrorCode
"""
