"""Projection, runway and reporting services."""

from .projection_engine import ProjectionEngine
from .runway_service import RunwayHealth, RunwayService

__all__ = ["ProjectionEngine", "RunwayHealth", "RunwayService"]
