"""TripCrew: trip join requests, membership, attendance and reputation."""

__version__ = "1.0.0"
