"""
Database package initialization
"""
from .core import (
    AsyncSessionLocal,
    dispose_engines,
    get_async_db,
    get_engine,
    health_check_async,
)
from .session import session_scope

__all__ = [
    "AsyncSessionLocal",
    "dispose_engines",
    "get_async_db",
    "get_engine",
    "health_check_async",
    "session_scope",
]
