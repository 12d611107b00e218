"""Configuration model: loading, validation, defaults and merging."""

__all__ = ["core", "notifiers", "pipeline"]