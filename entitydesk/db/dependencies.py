"""FastAPI database dependencies."""

from collections.abc import Iterator

from sqlalchemy.orm import Session

from entitydesk.db.session import SessionLocal


def get_db() -> Iterator[Session]:
    """Yield a request-scoped session."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
