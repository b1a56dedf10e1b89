"""
Persistence gateways for RBAC records.
"""
