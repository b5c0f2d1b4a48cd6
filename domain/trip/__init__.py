"""Trip domain exports."""
from .entity import Trip
from .repository import TripRepository

__all__ = ["Trip", "TripRepository"]
