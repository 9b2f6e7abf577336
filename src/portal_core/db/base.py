"""Declarative base shared by every table module."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
