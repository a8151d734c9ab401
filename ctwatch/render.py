"""Renderers for projected rows.

Domains, rule names and keywords come straight from certificates and the
backend, so every value is escaped for its target before output.
"""

import re
from html import escape
from typing import TYPE_CHECKING

from .projection import (
    MatchRow,
    liveness_badge,
    project_metrics,
    project_performance,
)

if TYPE_CHECKING:
    from .dashboard import DashboardState

EMPTY_MESSAGE = "No matches found. Adjust filters or wait for new certificates..."

# C0/C1 control characters, which include the ESC that starts terminal sequences.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


def _html(text: str) -> str:
    return escape(text or "", quote=True)


def render_row_html(row: MatchRow) -> str:
    """Render one match as a table row."""
    return (
        "<tr>"
        f"<td><small>{_html(row.detected_at)}</small></td>"
        f'<td><div class="text-truncate" title="{_html(row.domains_full)}">{_html(row.domains)}</div></td>'
        f'<td><span class="badge bg-secondary">{_html(row.rule)}</span></td>'
        f'<td><span class="badge bg-{_html(row.badge)}">{_html(row.priority)}</span></td>'
        f"<td><small><code>{_html(row.keywords)}</code></small></td>"
        f'<td><a href="{_html(row.lookup_url)}" target="_blank" rel="noopener noreferrer"'
        ' class="btn btn-sm btn-outline-primary" title="View on crt.sh">lookup</a></td>'
        "</tr>"
    )


def render_rows_html(rows: list[MatchRow]) -> str:
    """Render the table body for a page, or the empty-state row."""
    if not rows:
        return f'<tr><td colspan="6" class="text-center text-muted py-5">{_html(EMPTY_MESSAGE)}</td></tr>'
    return "\n".join(render_row_html(row) for row in rows)


def render_status_badge_html(state: "DashboardState") -> str:
    """Render the Online/Offline badge. Empty before the first poll completes."""
    badge = liveness_badge(state.liveness)
    if badge is None:
        return ""
    css_class, label = badge
    return f'<span class="badge bg-{css_class}">{label}</span>'


def sanitize_terminal(text: str) -> str:
    """Strip control characters so untrusted text cannot drive the terminal."""
    return _CONTROL_CHARS.sub("", text or "")


def _clip(text: str, width: int) -> str:
    text = sanitize_terminal(text)
    if len(text) <= width:
        return text.ljust(width)
    return text[: width - 1] + "…"


def render_text(state: "DashboardState", rows: list[MatchRow]) -> str:
    """Render the dashboard as a plain-text block for the terminal."""
    lines = []

    badge = liveness_badge(state.liveness)
    lines.append(f"Status: {badge[1] if badge else '-'}")

    if state.metrics is not None:
        m = project_metrics(state.metrics)
        lines.append(
            f"Matches: {m.total_matches}  Certificates: {m.total_certs}  "
            f"Rules: {m.active_rules}  Uptime: {m.uptime}"
        )
    if state.performance is not None:
        p = project_performance(state.performance)
        lines.append(
            f"Certs/min: {p.certs_per_minute}  Matches/min: {p.matches_per_minute}  "
            f"Avg match: {p.avg_match_time}  CPU: {p.cpu_usage}  Memory: {p.memory_usage}  "
            f"Workers: {p.workers}"
        )

    view = state.matches
    filters = [f"window={view.time_window_minutes}m"]
    if view.query:
        filters.append(f"query={sanitize_terminal(view.query)!r}")
    if view.priority:
        filters.append(f"priority={sanitize_terminal(view.priority)}")
    lines.append(f"{view.page.total} matches ({', '.join(filters)})")
    lines.append("")

    if not rows:
        lines.append(EMPTY_MESSAGE)
    else:
        lines.append(f"{'DETECTED':<19}  {'PRIORITY':<8}  {'RULE':<16}  {'DOMAINS':<48}  KEYWORDS")
        for row in rows:
            lines.append(
                f"{_clip(row.detected_at, 19)}  {_clip(row.priority, 8)}  {_clip(row.rule, 16)}  "
                f"{_clip(row.domains, 48)}  {sanitize_terminal(row.keywords)}"
            )
            lines.append(f"{'':<19}  {sanitize_terminal(row.lookup_url)}")

    page = view.page
    lines.append("")
    lines.append(f"Page {page.index + 1}/{page.page_count}")
    return "\n".join(lines)
