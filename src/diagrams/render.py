"""Render orchestration for chat diagrams.

Rendering is the only asynchronous step of the diagram pipeline. A
message's diagram is rendered from the conservative sanitizer's output
first; if the renderer rejects it, the aggressive output is tried once
(when it differs). When both fail the caller gets a FAILED outcome
carrying the raw code so it can be shown as plain text.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, Field

from studybuddy.diagrams.classify import DiagramKind, classify_diagram
from studybuddy.diagrams.extract import extract_diagram, extract_raw_diagram
from studybuddy.diagrams.sanitize import sanitize_aggressive, sanitize_conservative
from studybuddy.errors import EmptyRenderError, RenderReport, SanitizerTier

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Diagram syntax could not be auto-fixed"
DEFAULT_DEBOUNCE_SECONDS = 0.8


class DiagramRenderer(Protocol):
    """Turns diagram source into an SVG document, or raises."""

    async def render(self, source: str, render_id: str) -> str: ...


class RenderArtifacts(Protocol):
    """Removes whatever a render attempt leaves behind."""

    def remove(self, render_id: str) -> None: ...

    def sweep(self) -> None: ...


class RenderStatus(StrEnum):
    """Result of rendering one message's diagram."""

    EMPTY = "empty"
    RENDERED = "rendered"
    FALLBACK = "fallback"
    FAILED = "failed"


class RenderOutcome(BaseModel):
    """What the UI needs to show for a message's diagram."""

    status: RenderStatus
    kind: DiagramKind = DiagramKind.OTHER
    code: str | None = None
    fallback_code: str | None = None
    raw_code: str | None = None
    svg: str | None = None
    error: str = ""
    report: RenderReport = Field(default_factory=RenderReport)

    @property
    def ok(self) -> bool:
        return self.status in (RenderStatus.RENDERED, RenderStatus.FALLBACK)

    @property
    def label(self) -> str:
        return self.kind.label

    @property
    def display_code(self) -> str | None:
        """Plain-text code to show when rendering failed."""
        if self.status is not RenderStatus.FAILED:
            return None
        return self.raw_code


def new_render_id(prefix: str = "mermaid") -> str:
    """Unique identifier for one render attempt."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


async def try_render(
    renderer: DiagramRenderer,
    artifacts: RenderArtifacts,
    source: str,
    render_id: str,
) -> str:
    """Render *source* once, cleaning up artifacts on every path.

    Raises:
        EmptyRenderError: The renderer returned no SVG.
        Exception: Whatever the renderer raised.
    """
    try:
        svg = await renderer.render(source.strip(), render_id)
    finally:
        artifacts.remove(render_id)
        artifacts.sweep()

    if not svg or not svg.strip():
        raise EmptyRenderError(f"Empty SVG output for {render_id}")
    return svg


async def render_diagram(
    content: str | None,
    renderer: DiagramRenderer,
    artifacts: RenderArtifacts,
    *,
    fallback: bool = True,
) -> RenderOutcome:
    """Render the latest diagram in *content* with the two-tier retry.

    Never raises for render failures; they are reported in the outcome.
    """
    raw = extract_raw_diagram(content)
    if raw is None:
        return RenderOutcome(status=RenderStatus.EMPTY)

    code = sanitize_conservative(raw)
    fallback_code = sanitize_aggressive(raw)
    outcome = RenderOutcome(
        status=RenderStatus.FAILED,
        kind=classify_diagram(raw),
        code=code,
        fallback_code=fallback_code,
        raw_code=raw,
    )

    render_id = new_render_id()
    try:
        outcome.svg = await try_render(renderer, artifacts, code, render_id)
    except Exception as exc:
        logger.warning("Primary diagram render failed, trying fallback: %s", exc)
        outcome.report.record(
            SanitizerTier.CONSERVATIVE, render_id, success=False, message=str(exc)
        )
    else:
        outcome.report.record(SanitizerTier.CONSERVATIVE, render_id, success=True)
        outcome.status = RenderStatus.RENDERED
        return outcome

    if fallback and fallback_code != code:
        render_id = new_render_id("mermaid-fb")
        try:
            outcome.svg = await try_render(renderer, artifacts, fallback_code, render_id)
        except Exception as exc:
            logger.warning("Fallback diagram render also failed: %s", exc)
            outcome.report.record(
                SanitizerTier.AGGRESSIVE, render_id, success=False, message=str(exc)
            )
        else:
            logger.info("Fallback diagram render succeeded")
            outcome.report.record(SanitizerTier.AGGRESSIVE, render_id, success=True)
            outcome.status = RenderStatus.FALLBACK
            return outcome
    else:
        logger.debug("Skipping fallback render: nothing left to simplify")

    outcome.error = FAILURE_MESSAGE
    return outcome


class DiagramPanel:
    """Debounced renderer for the diagram shown beside a chat.

    Each :meth:`submit` replaces any render still waiting out the debounce
    delay. A render that has already started runs to completion, but its
    result is dropped if newer content was submitted meanwhile.
    """

    def __init__(
        self,
        renderer: DiagramRenderer,
        artifacts: RenderArtifacts,
        *,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        fallback: bool = True,
        on_outcome: Callable[[RenderOutcome], None] | None = None,
    ) -> None:
        self._renderer = renderer
        self._artifacts = artifacts
        self._delay = delay
        self._fallback = fallback
        self._on_outcome = on_outcome
        self._pending: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()
        self._generation = 0
        self._last_rendered: str | None = None
        self.code: str | None = None
        self.outcome: RenderOutcome | None = None
        self.is_rendering = False

    @property
    def kind(self) -> DiagramKind | None:
        return classify_diagram(self.code) if self.code else None

    @property
    def label(self) -> str:
        kind = self.kind
        return kind.label if kind else DiagramKind.OTHER.label

    def submit(self, content: str | None) -> None:
        """Schedule a render of *content*; must run inside an event loop."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self._generation += 1

        self.code = extract_diagram(content)
        if self.code is None:
            self.outcome = None
            self.is_rendering = False
            self._last_rendered = None
            return

        if self.code == self._last_rendered and self.outcome is not None and self.outcome.ok:
            # The bumped generation drops any render still in flight.
            self.is_rendering = False
            return

        self.is_rendering = True
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(self._debounce(content, self._generation))

    async def _debounce(self, content: str | None, generation: int) -> None:
        await asyncio.sleep(self._delay)
        task = asyncio.ensure_future(self._render(content, generation))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        await asyncio.shield(task)

    async def _render(self, content: str | None, generation: int) -> None:
        outcome = await render_diagram(
            content, self._renderer, self._artifacts, fallback=self._fallback
        )
        if generation != self._generation:
            logger.debug("Discarding stale diagram render %s", outcome.report.render_ids)
            return

        self.outcome = outcome
        self.is_rendering = False
        if outcome.ok:
            self._last_rendered = outcome.code
        if self._on_outcome is not None:
            self._on_outcome(outcome)

    async def wait(self) -> RenderOutcome | None:
        """Wait for pending and in-flight renders; return the latest outcome."""
        while True:
            tasks = [t for t in (self._pending, *self._in_flight) if t is not None and not t.done()]
            if not tasks:
                return self.outcome
            await asyncio.gather(*tasks, return_exceptions=True)
