"""
Monitor Logger - Logs monitoring lifecycle and proxy events
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_monitor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a monitoring event.

    Args:
        session_id: Monitoring session ID
        event_type: Type of event (session_start, proxy_event, stop, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[MONITOR] event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.log(log_level, message, extra={"session_id": session_id})


def log_session_start(session_id: str, video_source: str):
    """Log camera session start"""
    log_monitor_event(
        session_id=session_id,
        event_type="session_start",
        details={"video_source": video_source}
    )


def log_session_end(session_id: str, events: int, detections: int):
    """Log camera session end"""
    log_monitor_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "proxy_events": events,
            "device_detections": detections
        }
    )


def log_monitoring_state(session_id: str, active: bool):
    log_monitor_event(
        session_id=session_id,
        event_type="monitoring_started" if active else "monitoring_stopped"
    )


def log_reference_captured(session_id: str, descriptor_size: int):
    log_monitor_event(
        session_id=session_id,
        event_type="reference_captured",
        details={"descriptor_size": descriptor_size}
    )


def log_proxy_event(session_id: str, kind: str, label: str):
    """Log a proxy event appended to the session log"""
    log_monitor_event(
        session_id=session_id,
        event_type="proxy_event",
        details={"kind": kind, "label": repr(label)},
        level="warning"
    )
