"""SQLAlchemy metadata registry import for Alembic."""

from entitydesk.models import Base, EntityDocument

__all__ = ["Base", "EntityDocument"]
