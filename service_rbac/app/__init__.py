"""
RBAC Service package.

This package decides whether a user may perform an action within an
organization by combining role grants with optional organization policies.
It provides:

- app.main: API surface for permission checks, role assignment and health.
- app.adapter: Public operations (assignment with audit, evaluation).
- app.store: Typed CRUD accessors over the persistence gateway.
- app.rules: Models, condition evaluation, matching, policies and engine.
- app.audit: Audit trail for role assignment changes.
- app.persistence: Gateway contract plus in-memory and PostgreSQL backends.

Guidelines:
- Evaluation never writes; only role mutations produce audit entries.
- Malformed stored conditions deny; malformed policies are skipped.
"""
