"""Adapters connecting the domain to the ledger, key files and config files."""
