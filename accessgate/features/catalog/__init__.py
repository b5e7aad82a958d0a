"""
Feature catalog: the named capability areas that permissions are granted on.
"""
