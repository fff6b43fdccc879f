"""Lightweight models package initialiser.

- Exposes the shared SQLAlchemy `Base`.
- Lazily exposes all domain models via module-level attribute access so importing
  `socialapp.core.database` (which pulls `Base`) doesn't eagerly import every model.
"""

from socialapp.models.base import Base

__all__ = ["Base"]


def __getattr__(name: str):
    import importlib

    _registry = importlib.import_module("socialapp.models.registry")

    if hasattr(_registry, name):
        return getattr(_registry, name)
    raise AttributeError(f"module 'socialapp.models' has no attribute {name!r}")


def __dir__():
    import importlib

    _registry = importlib.import_module("socialapp.models.registry")

    return sorted(set(list(globals().keys()) + list(_registry.__all__)))
