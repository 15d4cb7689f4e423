"""Persistence layer for Tallr state."""

from tallr.persistence.state_file import StateFile

__all__ = ["StateFile"]
