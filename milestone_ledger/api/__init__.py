"""HTTP adapter over the ledger engine."""
