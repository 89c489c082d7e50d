"""DesignLens evaluation service package."""

from __future__ import annotations

from .__main__ import main
from .app import SERVICE_VERSION, create_app

__all__ = [
    "SERVICE_VERSION",
    "create_app",
    "main",
]
