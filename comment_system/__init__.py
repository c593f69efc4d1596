"""Threaded comment service: comments, replies, reactions and realtime events."""

__version__ = "1.0.0"
