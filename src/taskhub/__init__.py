"""Batched read-through cache layer for the task manager API."""

__version__ = "0.1.0"
