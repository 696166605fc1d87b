"""Adapters connecting the reconciliation domain to storage, HTTP and files."""
