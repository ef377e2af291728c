"""Mail Day Tracker - per-day country presence from location ping emails."""

__version__ = "0.1.0"
