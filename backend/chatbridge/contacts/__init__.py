"""Contact identity resolution."""
from .resolver import ContactResolver
from .schemas import ContactInfo

__all__ = ["ContactInfo", "ContactResolver"]
