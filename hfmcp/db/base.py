"""Declarative base for hfmcp SQLAlchemy models."""

from sqlalchemy.orm import DeclarativeBase


class BaseEntity(DeclarativeBase):
    """Base class for all hfmcp database entities."""
