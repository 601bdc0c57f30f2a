#!/usr/bin/env python3
"""Plain-text reports rendered with Jinja2.

Renders the dry-run preview, the result of a bulk run and the move
history listing shown by the CLI.

Example:
    >>> print(render_history(history.entries, limit=10))
    Showing 2 of last 2 moves.
    * 2024-05-01 09:30:12  a.md: Inbox/a.md -> Notes/a.md (rule: type)
      2024-05-01 09:29:58  b.md: Inbox/b.md -> Work/b.md (rule: project)
"""

from datetime import datetime
from typing import Iterable, List, Optional

import jinja2

from vaultorg.organizer.history import MoveHistoryEntry
from vaultorg.organizer.scheduler import PlannedMove, ReorganizeResult

PREVIEW_TEMPLATE = """\
{% if moves %}
{{ moves|length }} file(s) would be moved:
{% for move in moves %}
  {{ move.path }} -> {{ move.new_path }} (rule: {{ move.rule.key }})
{% for warning in move.warnings %}
    warning: {{ warning }}
{% endfor %}
{% endfor %}
{% else %}
No files would be moved.
{% endif %}
{% if invalid %}
{{ invalid|length }} file(s) have an invalid destination:
{% for move in invalid %}
  {{ move.path }}: {{ move.error.user_message() }}
{% for warning in move.warnings %}
    warning: {{ warning }}
{% endfor %}
{% endfor %}
{% endif %}
"""

RESULT_TEMPLATE = """\
Moved {{ result.moved }} file(s).
{% if result.skipped %}
Skipped {{ result.skipped|length }} file(s):
{% for entry in result.skipped %}
  {{ entry.path }}: {{ entry.reason }}
{% endfor %}
{% endif %}
"""

HISTORY_TEMPLATE = """\
{% if total %}
Showing {{ shown|length }} of last {{ total }} moves.
{% for entry in shown %}
{{ "*" if loop.first else " " }} {{ entry.timestamp|moment }}  \
{{ entry.file_name }}: {{ entry.from_path }} -> {{ entry.to_path }}\
{% if entry.rule_key %} (rule: {{ entry.rule_key }}){% endif %}

{% endfor %}
{% else %}
No move history yet.
{% endif %}
"""


def format_timestamp(timestamp_ms: int) -> str:
    """Format a millisecond epoch timestamp in local time."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


_environment: Optional[jinja2.Environment] = None


def get_environment() -> jinja2.Environment:
    """Get the shared Jinja2 environment, creating it on first use."""
    global _environment
    if _environment is None:
        _environment = jinja2.Environment(
            loader=jinja2.DictLoader(
                {
                    "preview.txt": PREVIEW_TEMPLATE,
                    "result.txt": RESULT_TEMPLATE,
                    "history.txt": HISTORY_TEMPLATE,
                }
            ),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=jinja2.StrictUndefined,
        )
        _environment.filters["moment"] = format_timestamp
    return _environment


def render_preview(planned: Iterable[PlannedMove]) -> str:
    """Render a dry-run preview.

    Args:
        planned: Planned moves from ReorganizationScheduler.preview_all()

    Returns:
        Report text
    """
    planned = list(planned)
    moves = [move for move in planned if move.would_move]
    invalid = [move for move in planned if move.error is not None]
    return get_environment().get_template("preview.txt").render(moves=moves, invalid=invalid)


def render_result(result: ReorganizeResult) -> str:
    """Render the outcome of a bulk run."""
    return get_environment().get_template("result.txt").render(result=result)


def render_history(entries: Iterable[MoveHistoryEntry], limit: Optional[int] = None) -> str:
    """Render the move history, most recent first.

    Args:
        entries: History entries, oldest first
        limit: Show at most this many entries

    Returns:
        Report text; the most recent entry is marked with ``*``
    """
    entries = list(entries)
    shown: List[MoveHistoryEntry] = list(reversed(entries))
    if limit is not None:
        shown = shown[:limit]
    return get_environment().get_template("history.txt").render(shown=shown, total=len(entries))
