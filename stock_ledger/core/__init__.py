"""Logging and tracing plumbing shared by the ledger modules."""
