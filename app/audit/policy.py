# app/audit/policy.py
"""Audit policy: which exchanges get recorded and how their payloads are scrubbed.

Policies are immutable. Two named presets ship with the service:

* ``full`` records every exchange outside the skip list, with the JSON request
  body (redacted), the query string and the response body (truncated).
* ``minimal`` records the same exchanges but keeps only metadata.

``AuditPolicy.from_settings`` picks the preset named by ``AUDIT_POLICY`` and
applies per-field environment overrides on top of it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

logger = logging.getLogger(__name__)

POLICY_VERSION = 1

DEFAULT_SKIP_ROUTES: tuple[str, ...] = ("/api/health", "/api/status")
DEFAULT_REDACT_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "access_token",
        "refresh_token",
        "credit_card",
        "ssn",
        "cvv",
    }
)
BODY_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True)
class AuditPolicy:
    name: str = "full"
    version: int = POLICY_VERSION
    skip_routes: tuple[str, ...] = DEFAULT_SKIP_ROUTES
    methods: frozenset[str] | None = None
    min_status: int | None = None
    max_status: int | None = None
    capture_request_body: bool = True
    capture_query: bool = True
    capture_response_body: bool = True
    redact_fields: frozenset[str] = field(default=DEFAULT_REDACT_FIELDS)
    redaction_marker: str = "[REDACTED]"
    truncate_length: int = 1000
    truncate_suffix: str = "..."

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def is_skipped_route(self, route: str) -> bool:
        return any(skip and skip in route for skip in self.skip_routes)

    def should_record(self, route: str, method: str, status_code: int | None = None) -> bool:
        """True when an exchange on ``route`` should produce an audit row.

        ``status_code`` may be omitted for the pre-response check.
        """
        if self.is_skipped_route(route):
            return False
        if self.methods is not None and method.upper() not in self.methods:
            return False
        if status_code is not None:
            if self.min_status is not None and status_code < self.min_status:
                return False
            if self.max_status is not None and status_code > self.max_status:
                return False
        return True

    def wants_request_body(self, method: str) -> bool:
        return self.capture_request_body and method.upper() in BODY_METHODS

    # ------------------------------------------------------------------
    # Scrubbing
    # ------------------------------------------------------------------

    def redact(self, value: Any) -> Any:
        """Return a copy of ``value`` with sensitive keys masked at any depth."""
        if isinstance(value, Mapping):
            out = {}
            for key, item in value.items():
                if str(key).lower() in self.redact_fields and item is not None:
                    out[key] = self.redaction_marker
                else:
                    out[key] = self.redact(item)
            return out
        if isinstance(value, list):
            return [self.redact(item) for item in value]
        return value

    def truncate(self, text: str | None) -> str | None:
        if text is None:
            return None
        if len(text) > self.truncate_length:
            return text[: self.truncate_length] + self.truncate_suffix
        return text

    def serialize_request_body(self, body: Any) -> str | None:
        if body is None:
            return None
        try:
            return json.dumps(self.redact(body), ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return None

    def serialize_query(self, params: Iterable[tuple[str, str]]) -> str | None:
        if not self.capture_query:
            return None
        query: dict[str, Any] = {}
        for key, value in params:
            # Repeated keys collapse into a list
            if key in query:
                prev = query[key]
                query[key] = prev + [value] if isinstance(prev, list) else [prev, value]
            else:
                query[key] = value
        if not query:
            return None
        return json.dumps(self.redact(query), ensure_ascii=False)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def preset(cls, name: str) -> AuditPolicy:
        key = (name or "full").strip().lower()
        try:
            return PRESETS[key]
        except KeyError:
            logger.warning(
                "Unknown audit policy %r, falling back to 'full'",
                name,
                extra={"meta": {"known": sorted(PRESETS)}},
            )
            return PRESETS["full"]

    @classmethod
    def from_settings(cls, cfg=None) -> AuditPolicy:
        if cfg is None:
            from app.settings import settings as cfg

        policy = cls.preset(cfg.AUDIT_POLICY)
        overrides: dict[str, Any] = {}
        if cfg.audit_skip_routes is not None:
            overrides["skip_routes"] = tuple(cfg.audit_skip_routes)
        if cfg.audit_methods:
            overrides["methods"] = frozenset(cfg.audit_methods)
        if cfg.AUDIT_MIN_STATUS is not None:
            overrides["min_status"] = cfg.AUDIT_MIN_STATUS
        if cfg.AUDIT_MAX_STATUS is not None:
            overrides["max_status"] = cfg.AUDIT_MAX_STATUS
        return replace(policy, **overrides) if overrides else policy

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "skip_routes": list(self.skip_routes),
            "methods": sorted(self.methods) if self.methods is not None else None,
            "status_range": [self.min_status, self.max_status],
            "bodies": self.capture_request_body or self.capture_response_body,
        }


PRESETS: dict[str, AuditPolicy] = {
    "full": AuditPolicy(name="full"),
    "minimal": AuditPolicy(
        name="minimal",
        capture_request_body=False,
        capture_query=False,
        capture_response_body=False,
    ),
}

__all__ = ["AuditPolicy", "PRESETS", "POLICY_VERSION", "DEFAULT_SKIP_ROUTES"]
