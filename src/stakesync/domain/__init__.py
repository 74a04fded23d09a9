"""Reconciliation domain: model, diff algorithms and transaction planning."""
