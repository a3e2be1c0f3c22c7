"""Group detail and administration."""
from .service import GroupService

__all__ = ["GroupService"]
