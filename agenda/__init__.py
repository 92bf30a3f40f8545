"""Salon appointment booking: availability, reservations and admin panel."""

__version__ = "1.0.0"
