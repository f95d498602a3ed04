"""Escalation queue for human-in-the-loop review."""

from concord.escalation.queue import EscalationQueue, derive_priority

__all__ = ["EscalationQueue", "derive_priority"]
