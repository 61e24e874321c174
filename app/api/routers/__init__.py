"""Router modules exposed for convenient imports."""

from . import admin_issues, healthz, issues, readyz

__all__ = [
    "admin_issues",
    "healthz",
    "issues",
    "readyz",
]
