"""
Notification policy: when a state transition should alert the user.

Only PENDING and ERROR ever notify. When the reporter attaches a
confidence score, it must reach the threshold of the detection method that
produced it; higher-fidelity detectors get a higher bar. Reports without a
confidence score (plain ``/tasks/state`` and upserts from older wrappers)
always notify for PENDING and ERROR.
"""

import logging
from typing import Any, Dict, Optional

from tallr.core.models import ALERT_STATES, EnhancedStateContext, TaskState

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLDS: Dict[str, float] = {
    "network": 0.8,
    "session-file": 0.85,
    "pattern": 0.7,
}
DEFAULT_CONFIDENCE_THRESHOLD = 0.75

# Maps the reporter's ``source`` field onto a detection method
SOURCE_DETECTION_METHODS: Dict[str, str] = {
    "hook": "hooks",
    "wrapper": "patterns",
}

MAX_PREVIEW_LENGTH = 50


def confidence_threshold(detection_method: Optional[str]) -> float:
    """Minimum confidence required for a detection method to notify."""
    return CONFIDENCE_THRESHOLDS.get(detection_method or "", DEFAULT_CONFIDENCE_THRESHOLD)


def should_notify(
    new_state: str,
    detection_method: Optional[str] = None,
    confidence: Optional[float] = None,
) -> bool:
    """Decide whether a transition into ``new_state`` raises an alert.

    Args:
        new_state: Reported task state
        detection_method: Technique that produced the transition
        confidence: Detector confidence in [0, 1], or None for legacy callers

    Returns:
        True if the user should be notified
    """
    if TaskState.classify(new_state) not in ALERT_STATES:
        return False

    if confidence is None:
        return True

    threshold = confidence_threshold(detection_method)
    if confidence < threshold:
        logger.debug(
            f"Suppressing {new_state} notification: confidence {confidence:.2f} "
            f"below {threshold:.2f} for {detection_method or 'unknown'} detection"
        )
        return False
    return True


def resolve_detection_method(source: Optional[str], detection_method: Optional[str]) -> str:
    """Work out the detection method for a plain state update."""
    if source in SOURCE_DETECTION_METHODS:
        return SOURCE_DETECTION_METHODS[source]
    return detection_method or "unknown"


def build_enhanced_details(context: EnhancedStateContext) -> str:
    """Summarize a detection context as a one-line details string."""
    parts = [
        f"Detection: {context.detection_method} (confidence: {context.confidence * 100:.1f}%)"
    ]

    network = context.network
    if network is not None:
        if network.active_requests > 0:
            parts.append(f"Active requests: {network.active_requests}")
        if network.average_response_time > 0:
            parts.append(f"Avg response: {network.average_response_time}ms")
        if network.thinking_duration:
            parts.append(f"Thinking: {network.thinking_duration // 1000}s")

    session = context.session
    if session is not None:
        if session.message_count is not None:
            parts.append(f"Messages: {session.message_count}")
        if session.last_message is not None:
            parts.append(f"Last: {session.last_message.preview}")

    return " | ".join(parts)


def _truncate_preview(preview: str) -> str:
    if len(preview) > MAX_PREVIEW_LENGTH:
        return preview[: MAX_PREVIEW_LENGTH - 3] + "..."
    return preview


def build_notification(
    project_name: str,
    agent: str,
    state: str,
    context: Optional[EnhancedStateContext] = None,
    debug: bool = False,
) -> Dict[str, Any]:
    """Build the payload for a ``show-notification`` event.

    Args:
        project_name: Name of the task's project
        agent: Agent label of the task
        state: New task state
        context: Detection context, when the update carried one
        debug: Append the confidence percentage to the title

    Returns:
        Dict with ``title`` and ``body``; enhanced updates also carry
        ``confidence`` and ``detectionMethod``
    """
    title = f"{project_name} - {agent}"
    body = state

    if context is None:
        return {"title": title, "body": body}

    if TaskState.classify(state) is TaskState.PENDING:
        network = context.network
        if network is not None and network.thinking_duration:
            body = f"{body} (after {network.thinking_duration // 1000}s thinking)"

        session = context.session
        if session is not None and session.last_message is not None:
            body = f"{body}: {_truncate_preview(session.last_message.preview)}"

    if debug:
        title = f"{title} ({context.confidence * 100:.0f}%)"

    return {
        "title": title,
        "body": body,
        "confidence": context.confidence,
        "detectionMethod": context.detection_method,
    }
