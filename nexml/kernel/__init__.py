"""
NexML Kernel

Event recording and delivery for committed registry changes.
"""

from .event_log import EventHandler, EventLog, Subscription

__all__ = ["EventHandler", "EventLog", "Subscription"]
