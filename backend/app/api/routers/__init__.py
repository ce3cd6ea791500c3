"""Router exports for FastAPI composition."""

from . import access, diary, health

__all__ = ["access", "diary", "health"]
