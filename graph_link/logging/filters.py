"""
Logging filters for graph_link.

connection_init payloads and HTTP headers commonly carry credentials, and
frames are logged at debug level, so every handler installed by
``setup_logging`` masks them.
"""

import logging
import re
from typing import List, Pattern, Tuple


class SensitiveDataFilter(logging.Filter):
    """Filter to mask sensitive data in log messages."""

    def __init__(self) -> None:
        """Initialize sensitive data filter."""
        super().__init__()

        self.rules: List[Tuple[Pattern[str], str]] = [
            # Tokens and keys, both ``key=value`` and JSON/dict styles
            (
                re.compile(
                    r'((?:api[_-]?key|access[_-]?token|auth[_-]?token|token|secret)'
                    r'["\']?\s*[:=]\s*["\']?)([^\s"\',}]{8,})',
                    re.IGNORECASE,
                ),
                r"\1***MASKED***",
            ),
            (re.compile(r"(bearer\s+)([A-Za-z0-9\-._~+/=]{8,})", re.IGNORECASE), r"\1***MASKED***"),
            (
                re.compile(
                    r'(authorization["\']?\s*[:=]\s*["\']?)(?!bearer\s)([^\s"\',}]{8,})',
                    re.IGNORECASE,
                ),
                r"\1***MASKED***",
            ),
            # Passwords
            (
                re.compile(r'((?:password|passwd|pwd)["\']?\s*[:=]\s*["\']?)([^\s"\',}]+)', re.IGNORECASE),
                r"\1***MASKED***",
            ),
            # URLs with credentials
            (re.compile(r"((?:https?|wss?)://[^:/\s]+):([^@\s]+)@", re.IGNORECASE), r"\1:***MASKED***@"),
        ]

    def mask(self, message: str) -> str:
        """Apply every masking rule to a message."""
        for pattern, replacement in self.rules:
            message = pattern.sub(replacement, message)
        return message

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter log record to mask sensitive data."""
        masked = self.mask(record.getMessage())
        record.msg = masked
        record.args = ()
        return True

