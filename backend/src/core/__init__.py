"""Core plumbing: settings, logging, errors and the relational store."""

from backend.src.core.config import Settings, settings
from backend.src.core.database import AsyncSessionLocal, Base, get_db
from backend.src.core.exceptions import APIException
from backend.src.core.logging import get_logger, get_request_id, set_request_id

__all__ = [
    "Settings",
    "settings",
    "AsyncSessionLocal",
    "Base",
    "get_db",
    "APIException",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
