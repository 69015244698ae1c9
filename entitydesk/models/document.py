"""Schemaless entity document ORM model."""

from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from entitydesk.models.base import Base, TimestampMixin


def new_document_id() -> str:
    return uuid4().hex


class EntityDocument(Base, TimestampMixin):
    """One stored record of any entity type."""

    __tablename__ = "entity_documents"
    __table_args__ = (Index("ix_entity_documents_type_org", "entity_type", "organization_id"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_document_id)
    entity_type: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    organization_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
