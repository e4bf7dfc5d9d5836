"""
Event system for tablewatch.

This package provides the event emitter used to publish snapshots and
verification outcomes to interested subscribers.
"""

from tablewatch.events.emitter import (
    EventEmitter,
    EventBus,
    EventPriority,
    WatchEventType,
)

__all__ = ["EventEmitter", "EventBus", "EventPriority", "WatchEventType"]
