"""Service layer encapsulating circulation business rules."""

from .circulation import CirculationService

__all__ = ["CirculationService"]
