"""
Analysis Errors
Classified failures raised by adapters and attached to bridge analysis responses.
"""

import time
from typing import Any, Dict, Optional

SEVERITIES = ("low", "medium", "high", "critical")


class AnalysisError(Exception):
    """
    A classified failure.

    `service` names the component that produced it ("orbiter", "hop",
    "historical", "api"). `retryable` tells the caller whether the same
    request may succeed later.
    """

    def __init__(
        self,
        code: str,
        message: str,
        service: str,
        severity: str = "medium",
        retryable: bool = False,
        context: Optional[Dict[str, Any]] = None,
        timestamp: Optional[int] = None,
    ):
        if severity not in SEVERITIES:
            severity = "medium"
        self.code = code
        self.message = message
        self.service = service
        self.severity = severity
        self.retryable = retryable
        self.context = context or {}
        self.timestamp = timestamp if timestamp is not None else int(time.time() * 1000)
        super().__init__(f"{code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "code": self.code,
            "message": self.message,
            "service": self.service,
            "severity": self.severity,
            "retryable": self.retryable,
            "timestamp": self.timestamp,
        }
        if self.context:
            data["context"] = self.context
        return data

    def __repr__(self) -> str:
        return f"AnalysisError(code={self.code!r}, service={self.service!r}, retryable={self.retryable})"
