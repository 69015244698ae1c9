"""Common result shapes shared by the backend and the entity clients."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class PaginatedResult(BaseModel, Generic[T]):
    """Canonical paginated list payload."""

    model_config = ConfigDict(populate_by_name=True)

    data: list[T] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0, alias="totalCount")
    total_pages: int = Field(default=0, ge=0, alias="totalPages")


class MutationResult(BaseModel, Generic[T]):
    """Uniform outcome of one entity client call.

    ``error`` wins over ``status`` when the two disagree.
    """

    status: int
    data: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status < 300


class DeleteResult(BaseModel):
    """Generic delete response payload."""

    id: str
    deleted: bool


class BulkDeleteRequest(BaseModel):
    """Identifiers to delete in one call."""

    ids: list[str] = Field(min_length=1)


class BulkDeleteResult(BaseModel):
    """Outcome of a bulk delete."""

    deleted_count: int = Field(alias="deletedCount")

    model_config = ConfigDict(populate_by_name=True)


JsonDocument = dict[str, Any]
