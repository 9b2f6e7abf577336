"""Closed enumerations for persisted lifecycle, visibility and audit fields."""

from __future__ import annotations

from enum import Enum


class PositionStatus(str, Enum):
    DRAFT = "Draft"
    LIVE = "Live"
    CLOSED = "Closed"
    ARCHIVED = "Archived"


class Visibility(str, Enum):
    ADMIN_ONLY = "admin_only"
    MEMBERS_VIEW = "members_view"


class AuditAction(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    CLOSE = "close"
    ARCHIVE = "archive"
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    RESTORE = "restore"
    PRICE_UPDATE = "price_update"


class Role(str, Enum):
    ADMIN = "admin"
    INVESTOR = "investor"
