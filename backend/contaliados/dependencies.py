from typing import Generator
from sqlalchemy.orm import Session

from .db import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Sesión de base de datos por request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
