# backend/app/db/base.py
"""
SQLAlchemy declarative base for all ORM models.
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Usage:
        class User(Base):
            __tablename__ = "users"
            id = Column(Integer, primary_key=True)
            ...
    """
    pass
