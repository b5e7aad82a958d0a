"""
Feature permission module.

Stores read/write/admin grants per (role, feature) pair, resolves them by
feature name and decides whether a principal may call a guarded endpoint.
"""
