from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured representation of an audit event.

    Keeps the payload to identifiers, types and flags. Message bodies and
    other clinical free text never go into audit events.
    """

    timestamp: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Log a structured audit event and return it.

        - `action`: high-level verb, e.g. "assign_provider", "send_message".
        - `resource_type`: coarse type, e.g. "care_team", "communication".
        - `resource_id`: stable identifier when available.
        - `subject`: the acting user or provider id. If omitted we fall back
          to the caller derived by the API security layer, when there is one.
        - `extra`: optional small dict of non-PHI metadata.
        """

        if subject is None:
            from src.careteam.security import get_current_subject

            subject = get_current_subject()

        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            subject=subject,
            extra=extra,
        )

        try:
            logger.info(json.dumps(asdict(event)))
        except TypeError:
            # Something in extra is not JSON serializable; drop it.
            safe_event = asdict(event)
            safe_event["extra"] = None
            logger.info(json.dumps(safe_event))

        return event
