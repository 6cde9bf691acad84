"""Backend package providing an authenticated REST API for expense tracking."""

from __future__ import annotations

__all__ = [
    "__version__",
    "auth",
    "config",
    "cors",
    "crud",
    "database",
    "logging",
    "models",
    "schemas",
    "security",
    "server",
]

__version__ = "1.0.0"
