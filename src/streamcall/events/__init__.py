"""Lifecycle event publishing."""

from streamcall.events.bus import WILDCARD, EventBus, Handler, Subscription

__all__ = ["EventBus", "Handler", "Subscription", "WILDCARD"]
