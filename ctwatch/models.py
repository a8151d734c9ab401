"""Data models for the certificate match feed and backend metrics."""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class PayloadError(ValueError):
    """Raised when a backend payload does not have the expected shape."""

    pass


class Liveness(Enum):
    """Aggregate connection status derived from poll outcomes."""

    ONLINE = "online"
    OFFLINE = "offline"


# Priorities the backend assigns to rules. Anything else is kept verbatim.
KNOWN_PRIORITIES = ("critical", "high", "medium", "low")


@dataclass(frozen=True)
class Match:
    """A detected certificate whose names satisfied a keyword rule.

    Attributes:
        detected_at: When the backend recorded the match (timezone-aware).
        dns_names: Subject alternative names, in certificate order.
        matched_rule: Identifier of the rule that triggered.
        priority: Rule priority as sent by the backend (unnormalized).
        matched_domains: Keyword(s) that matched, a string or a tuple of strings.
        tbs_sha256: Hex hash of the to-be-signed certificate, used for lookups.
    """

    detected_at: datetime
    dns_names: tuple[str, ...]
    matched_rule: str
    priority: str
    matched_domains: str | tuple[str, ...]
    tbs_sha256: str


@dataclass(frozen=True)
class MetricsSnapshot:
    """Summary counters from /api/metrics."""

    total_matches: int
    total_certs: int
    rules_count: int
    uptime_seconds: int
    recent_matches: int


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Point-in-time performance sample from /api/metrics/performance.

    Attributes:
        certs_per_minute: Certificates processed per minute.
        matches_per_minute: Matches produced per minute.
        avg_match_time_us: Average rule evaluation time in microseconds.
        cpu_percent: Backend CPU usage.
        memory_used_mb: Backend memory usage in megabytes.
        worker_count: Concurrent workers (``goroutine_count`` on the wire).
    """

    certs_per_minute: float
    matches_per_minute: float
    avg_match_time_us: float
    cpu_percent: float
    memory_used_mb: float
    worker_count: int


def _parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing ``Z``."""
    if not isinstance(value, str) or not value:
        raise PayloadError(f"detected_at must be a non-empty string, got {value!r}")
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise PayloadError(f"Invalid detected_at timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _require(data: dict, key: str) -> Any:
    if key not in data or data[key] is None:
        raise PayloadError(f"Missing '{key}' field")
    return data[key]


def _non_negative_int(data: dict, key: str) -> int:
    value = _require(data, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadError(f"'{key}' must be a number, got {value!r}")
    if value < 0:
        raise PayloadError(f"'{key}' must be non-negative, got {value!r}")
    return int(value)


def _number(data: dict, key: str) -> float:
    value = _require(data, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadError(f"'{key}' must be a number, got {value!r}")
    return value


def parse_match(data: Any) -> Match:
    """Build a Match from one entry of the ``matches`` list.

    Raises:
        PayloadError: If required fields are missing or malformed.
    """
    if not isinstance(data, dict):
        raise PayloadError("Match entry must be an object")

    dns_names = _require(data, "dns_names")
    if not isinstance(dns_names, list) or not dns_names:
        raise PayloadError("'dns_names' must be a non-empty list")

    matched_domains = data.get("matched_domains")
    if isinstance(matched_domains, list):
        keywords: str | tuple[str, ...] = tuple(str(k) for k in matched_domains)
    elif matched_domains is None:
        keywords = ""
    else:
        keywords = str(matched_domains)

    priority = data.get("priority")

    return Match(
        detected_at=_parse_timestamp(data.get("detected_at")),
        dns_names=tuple(str(name) for name in dns_names),
        matched_rule=str(data.get("matched_rule") or ""),
        priority=str(priority) if priority is not None else "",
        matched_domains=keywords,
        tbs_sha256=str(data.get("tbs_sha256") or ""),
    )


def parse_matches(payload: Any) -> list[Match]:
    """Parse the /api/matches/recent payload. A null ``matches`` is empty."""
    if not isinstance(payload, dict):
        raise PayloadError("Matches payload must be an object")
    entries = payload.get("matches") or []
    if not isinstance(entries, list):
        raise PayloadError("'matches' must be a list")
    return [parse_match(entry) for entry in entries]


def parse_metrics(payload: Any) -> MetricsSnapshot:
    """Parse the /api/metrics payload."""
    if not isinstance(payload, dict):
        raise PayloadError("Metrics payload must be an object")
    return MetricsSnapshot(
        total_matches=_non_negative_int(payload, "total_matches"),
        total_certs=_non_negative_int(payload, "total_certs"),
        rules_count=_non_negative_int(payload, "rules_count"),
        uptime_seconds=_non_negative_int(payload, "uptime_seconds"),
        recent_matches=_non_negative_int(payload, "recent_matches"),
    )


def parse_performance(payload: Any) -> PerformanceSnapshot | None:
    """Parse the /api/metrics/performance payload.

    Returns:
        The current sample, or None when the backend has no sample yet.
    """
    if not isinstance(payload, dict):
        raise PayloadError("Performance payload must be an object")
    current = payload.get("current")
    if current is None:
        return None
    if not isinstance(current, dict):
        raise PayloadError("'current' must be an object or null")
    return PerformanceSnapshot(
        certs_per_minute=_number(current, "certs_per_minute"),
        matches_per_minute=_number(current, "matches_per_minute"),
        avg_match_time_us=_number(current, "avg_match_time_us"),
        cpu_percent=_number(current, "cpu_percent"),
        memory_used_mb=_number(current, "memory_used_mb"),
        worker_count=_non_negative_int(current, "goroutine_count"),
    )
