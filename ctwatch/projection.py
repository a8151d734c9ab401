"""Display projections for matches, metrics and liveness.

Everything here is a pure function of its input. Row values are plain text;
escaping is the renderer's job (see ``render``).
"""

from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote

from .config import DEFAULT_LOOKUP_URL_TEMPLATE
from .models import Liveness, Match, MetricsSnapshot, PerformanceSnapshot

# Number of DNS names shown before the "(+N more)" suffix.
MAX_VISIBLE_DOMAINS = 3

PRIORITY_BADGES = {
    "critical": "danger",
    "high": "warning",
    "medium": "info",
    "low": "secondary",
}
DEFAULT_BADGE = "secondary"

LOCAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class MatchRow:
    """Display fields for one row of the match table.

    Attributes:
        detected_at: Detection time in local time.
        domains: Up to three DNS names, with a "(+N more)" suffix if truncated.
        domains_full: Every DNS name, for a tooltip.
        rule: Name of the rule that matched.
        priority: Priority label as received.
        badge: Badge class for the priority.
        keywords: Matched keyword(s), comma separated.
        lookup_url: External certificate lookup link.
    """

    detected_at: str
    domains: str
    domains_full: str
    rule: str
    priority: str
    badge: str
    keywords: str
    lookup_url: str


def priority_badge(priority: str | None) -> str:
    """Map a priority to its badge class. Unknown and missing priorities share one class."""
    return PRIORITY_BADGES.get(priority or "", DEFAULT_BADGE)


def summarize_domains(dns_names: tuple[str, ...] | list[str]) -> str:
    """Join the first few DNS names and note how many were left out."""
    summary = ", ".join(dns_names[:MAX_VISIBLE_DOMAINS])
    hidden = len(dns_names) - MAX_VISIBLE_DOMAINS
    if hidden > 0:
        summary += f" (+{hidden} more)"
    return summary


def format_keywords(matched_domains: str | tuple[str, ...] | list[str]) -> str:
    if isinstance(matched_domains, (tuple, list)):
        return ", ".join(matched_domains)
    return matched_domains


def lookup_url(tbs_sha256: str, template: str = DEFAULT_LOOKUP_URL_TEMPLATE) -> str:
    """Build the external lookup link for a certificate hash.

    Only the `{tbs_sha256}` placeholder is substituted; any other braces in
    the template are kept literally.
    """
    return template.replace("{tbs_sha256}", quote(tbs_sha256, safe=""))


def format_local_time(value: datetime) -> str:
    return value.astimezone().strftime(LOCAL_TIME_FORMAT)


def project_match(match: Match, lookup_url_template: str = DEFAULT_LOOKUP_URL_TEMPLATE) -> MatchRow:
    """Map one match to its display fields."""
    return MatchRow(
        detected_at=format_local_time(match.detected_at),
        domains=summarize_domains(match.dns_names),
        domains_full=", ".join(match.dns_names),
        rule=match.matched_rule,
        priority=match.priority,
        badge=priority_badge(match.priority),
        keywords=format_keywords(match.matched_domains),
        lookup_url=lookup_url(match.tbs_sha256, lookup_url_template),
    )


def format_uptime(seconds: int) -> str:
    """Format uptime using its largest whole unit (e.g. 59s, 4m, 2h, 3d)."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def _format_count(value: float) -> str:
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,}"
    return f"{int(value):,}"


@dataclass(frozen=True)
class MetricsDisplay:
    """Summary counters formatted for the metric cards."""

    total_matches: str
    total_certs: str
    active_rules: str
    uptime: str
    show_clear_control: bool


@dataclass(frozen=True)
class PerformanceDisplay:
    """Performance sample formatted for the performance cards."""

    certs_per_minute: str
    matches_per_minute: str
    avg_match_time: str
    cpu_usage: str
    memory_usage: str
    workers: str


def project_metrics(metrics: MetricsSnapshot) -> MetricsDisplay:
    return MetricsDisplay(
        total_matches=_format_count(metrics.total_matches),
        total_certs=_format_count(metrics.total_certs),
        active_rules=_format_count(metrics.rules_count),
        uptime=format_uptime(metrics.uptime_seconds),
        # The clear-matches form is only offered when there is something to clear.
        show_clear_control=metrics.recent_matches > 0,
    )


def project_performance(sample: PerformanceSnapshot) -> PerformanceDisplay:
    avg = sample.avg_match_time_us
    avg_text = str(int(avg)) if float(avg).is_integer() else str(avg)
    return PerformanceDisplay(
        certs_per_minute=_format_count(sample.certs_per_minute),
        matches_per_minute=_format_count(sample.matches_per_minute),
        avg_match_time=f"{avg_text} μs",
        cpu_usage=f"{sample.cpu_percent:.1f}%",
        memory_usage=f"{sample.memory_used_mb:.1f} MB",
        workers=_format_count(sample.worker_count),
    )


def liveness_badge(liveness: Liveness | None) -> tuple[str, str] | None:
    """Return (badge class, label) for the status badge, or None before the first poll."""
    if liveness is None:
        return None
    if liveness is Liveness.ONLINE:
        return "success", "Online"
    return "danger", "Offline"
