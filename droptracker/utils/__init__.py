"""Utility modules for the drop tracker."""

from droptracker.utils.timeutil import utcnow

__all__ = ["utcnow"]
