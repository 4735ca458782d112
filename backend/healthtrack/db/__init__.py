"""Database utilities and models."""

from healthtrack.db.base import Base
from healthtrack.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
