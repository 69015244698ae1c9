"""ORM models package exports."""

from entitydesk.models.base import Base
from entitydesk.models.document import EntityDocument

__all__ = ["Base", "EntityDocument"]
