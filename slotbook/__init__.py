"""Availability and time-slot generation engine for solo service providers."""

__version__ = "0.1.0"
