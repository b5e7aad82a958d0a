"""
Roles: named bundles of feature grants.
"""
