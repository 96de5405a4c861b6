"""Structured audit logging of authentication decisions."""

from __future__ import annotations

import hashlib
import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from .config import LoggingSettings
from .types import AuthDecision


def _subject(claims: Any) -> Optional[str]:
    if isinstance(claims, dict):
        subject = claims.get("sub")
    else:
        subject = getattr(claims, "sub", None)
    return None if subject is None else str(subject)


def _destination_logger(settings: LoggingSettings) -> logging.Logger:
    """One child of ``jwtguard.audit`` per destination, with a single handler."""

    parent = logging.getLogger("jwtguard.audit")
    if settings.output == "file":
        path = os.path.abspath(settings.file_path)
        logger = parent.getChild("file-" + hashlib.sha1(path.encode("utf-8")).hexdigest()[:12])
    else:
        path = None
        logger = parent.getChild("stderr")
    if logger.handlers:
        return logger
    handler: logging.Handler
    if path is not None:
        handler = RotatingFileHandler(path, maxBytes=settings.rotate_bytes, backupCount=3)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


class AuditLogger:
    """Writes one JSON line per authentication decision.

    Credentials are never written, only where they came from.
    """

    def __init__(self, settings: LoggingSettings) -> None:
        self.logger = _destination_logger(settings)
        self.logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))

    def log(self, decision: AuthDecision) -> None:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "decision": "allow" if decision.allowed else "deny",
            "reason": decision.reason,
            "source": str(decision.source) if decision.source else None,
            "subject": _subject(decision.claims),
            "error": type(decision.error).__name__ if decision.error else None,
            "cause": str(decision.error) if decision.error else None,
        }
        if decision.reason == "skipped":
            level = logging.DEBUG
        else:
            level = logging.INFO if decision.allowed else logging.WARNING
        self.logger.log(level, json.dumps(payload))
