"""
Shared SQLAlchemy DeclarativeBase for all models.

All tables register on the same metadata so database initialization can
create them in one pass.
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

metadata = MetaData()


class Base(DeclarativeBase):
    """Shared declarative base for all chat relay models."""

    metadata = metadata
