"""Terminal rendering of the transcript egress view."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from parley.types import SessionStatus, TranscriptView

STATUS_STYLES = {
    SessionStatus.IDLE: "dim",
    SessionStatus.CONNECTING: "yellow",
    SessionStatus.ACTIVE: "green",
    SessionStatus.STOPPED: "dim",
    SessionStatus.ERRORED: "red",
}


def build_transcript_panel(view: TranscriptView, *, width: Optional[int] = None) -> Panel:
    body = Text()
    if view.segments:
        body.append(view.text)
    if view.current_partial:
        if view.segments:
            body.append(" ")
        body.append(view.current_partial, style="dim italic")
    if not view.segments and not view.current_partial:
        body.append("No transcript yet.", style="dim")

    subtitle = Text(view.status.value, style=STATUS_STYLES.get(view.status, "dim"))
    return Panel(
        body,
        title="Transcript",
        subtitle=subtitle,
        border_style="cyan",
        width=width,
        padding=(1, 2),
    )


def render_view(console: Console, view: TranscriptView) -> None:
    """Print the transcript panel and any surfaced error."""
    console.print(build_transcript_panel(view, width=min(console.width, 100)))
    if view.error:
        console.print(f"[red]✗ Error:[/red] {view.error}")
