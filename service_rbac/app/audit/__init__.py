"""
Audit trail package.
"""
