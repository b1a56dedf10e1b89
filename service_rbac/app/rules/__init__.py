"""
Permission evaluation package.

Modules of interest:
- models: Entities, request context and parsed payload models.
- conditions: Time, weekday, IP and MFA restrictions on grants.
- matcher: Wildcard-aware ``resource:action`` matching.
- policies: Ordered, first-match policy rule resolution.
- grants: Concurrent resolution of a user's grants.
- engine: Role verdict with optional policy override.
"""
