"""Inbox Snapshot: privacy-preserving, time-boxed summaries of unread email."""

__version__ = "1.0.0"
