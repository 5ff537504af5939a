"""
Permission feature module.

Role hierarchy, per-user feature/sub-feature/action grants, and the
authorization engine that combines them with organization feature toggles.
"""
