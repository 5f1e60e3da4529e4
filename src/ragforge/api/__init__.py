"""HTTP routers."""
from __future__ import annotations

from .sessions import router as sessions_router

__all__ = ["sessions_router"]
