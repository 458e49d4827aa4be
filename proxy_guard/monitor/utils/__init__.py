"""Utility modules"""

from .logging import log_monitor_event

__all__ = ["log_monitor_event"]
