"""Listeners, alerts, events, their formatting and alert filters."""

__all__ = ["events", "filters"]