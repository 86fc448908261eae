"""WorkBot: shift announcements for tracked Discord game sessions."""

__version__ = "0.3.0"

__all__ = ["__version__"]
