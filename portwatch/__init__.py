"""Configuration, alert events and filters, and a listener baseline for watching ports."""

__version__ = "0.1.0"

__all__ = ["alert", "baseline", "config"]