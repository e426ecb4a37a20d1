"""Field-service API: RBAC + row-level security backend."""

__version__ = "1.0.0"
