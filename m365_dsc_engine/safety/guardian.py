"""
Safety Guardian — Gates every outbound Graph request by operation mode.
Get, Test and Export run read-only; Set may mutate, and every mutation
is recorded for audit.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("m365_dsc_engine.safety")

# ─── HTTP Methods ────────────────────────────────────────────────────────────

READ_METHODS = {"GET", "HEAD", "OPTIONS"}
WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Action endpoints the engine never calls, even in read-write mode
BLOCKED_URL_PATTERNS = [
    re.compile(r"/wipe$", re.IGNORECASE),
    re.compile(r"/retire$", re.IGNORECASE),
    re.compile(r"/resetPassword$", re.IGNORECASE),
    re.compile(r"/revokeSignInSessions$", re.IGNORECASE),
    re.compile(r"/setMobileDeviceManagementAuthority$", re.IGNORECASE),
]


class SafetyViolation(Exception):
    """Raised when a request is not allowed in the current mode."""
    pass


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SafetyGuardian:
    """
    Validates every outbound HTTP request against the operation mode.
    In read-only mode all write methods are refused; in read-write mode
    writes pass and are appended to the mutation log.
    """

    def __init__(self, allow_writes: bool = False):
        self.allow_writes = allow_writes
        self.violations: list[dict] = []
        self.mutations: list[dict] = []
        self.checks_performed: int = 0
        self.started_at: str = _utc_now()

    @property
    def mode(self) -> str:
        return "READ-WRITE" if self.allow_writes else "READ-ONLY"

    def validate_request(self, method: str, url: str, body: Optional[dict] = None) -> bool:
        """
        Validate a request for the current mode.
        Returns True if allowed, raises SafetyViolation if not.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        if method_upper in READ_METHODS:
            return True

        for pattern in BLOCKED_URL_PATTERNS:
            if pattern.search(url):
                self._record_violation(method_upper, url, "Blocked action URL")
                raise SafetyViolation(
                    f"SAFETY VIOLATION: Action URL is never allowed: {method_upper} {url}"
                )

        if method_upper in WRITE_METHODS and not self.allow_writes:
            self._record_violation(method_upper, url, "Write attempted in read-only mode")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Write method blocked in read-only mode: {method_upper} {url}"
            )

        self.mutations.append({
            "timestamp": _utc_now(),
            "method": method_upper,
            "url": url,
            "fields": sorted(body) if body else [],
        })
        logger.info(f"Mutation allowed: {method_upper} {url}")
        return True

    def _record_violation(self, method: str, url: str, reason: str):
        """Record a safety violation for audit."""
        violation = {
            "timestamp": _utc_now(),
            "method": method,
            "url": url,
            "reason": reason,
        }
        self.violations.append(violation)
        logger.critical(f"SAFETY VIOLATION: {reason} — {method} {url}")

    def get_audit_record(self) -> dict:
        """Return the full safety audit record."""
        return {
            "safety_guardian": {
                "mode": self.mode,
                "started_at": self.started_at,
                "checks_performed": self.checks_performed,
                "mutations": self.mutations,
                "violations_detected": len(self.violations),
                "violations": self.violations,
                "status": "CLEAN" if not self.violations else "VIOLATIONS_DETECTED",
            }
        }
