"""Exceptions and structured reporting for diagram render attempts."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class StudyBuddyError(Exception):
    """Base class for errors raised by studybuddy."""


class RenderError(StudyBuddyError):
    """The renderer rejected a diagram or could not run."""


class EmptyRenderError(RenderError):
    """The renderer reported success but produced no graphic."""


class SanitizerTier(StrEnum):
    """Which sanitizer produced the code handed to the renderer."""

    CONSERVATIVE = "conservative"
    AGGRESSIVE = "aggressive"


class RenderAttempt(BaseModel):
    """A single render try for one tier."""

    tier: SanitizerTier
    render_id: str
    success: bool = False
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)


class RenderReport(BaseModel):
    """Every render attempt made for one chat message."""

    attempts: list[RenderAttempt] = Field(default_factory=list)

    def record(
        self,
        tier: SanitizerTier,
        render_id: str,
        *,
        success: bool,
        message: str = "",
    ) -> RenderAttempt:
        """Append an attempt and return it."""
        attempt = RenderAttempt(
            tier=tier, render_id=render_id, success=success, message=message
        )
        self.attempts.append(attempt)
        return attempt

    @property
    def success(self) -> bool:
        return any(a.success for a in self.attempts)

    @property
    def escalated(self) -> bool:
        """True if the aggressive tier was tried."""
        return any(a.tier == SanitizerTier.AGGRESSIVE for a in self.attempts)

    @property
    def render_ids(self) -> list[str]:
        return [a.render_id for a in self.attempts]

    def summary_text(self) -> str:
        """Human-readable summary of the attempts."""
        if not self.attempts:
            return "No render attempted"

        status = "rendered" if self.success else "failed"
        lines = [f"Diagram {status} after {len(self.attempts)} attempt(s)"]
        for attempt in self.attempts:
            prefix = "[ok]" if attempt.success else "[error]"
            detail = f": {attempt.message}" if attempt.message else ""
            lines.append(f"  {prefix} {attempt.tier}{detail}")
        return "\n".join(lines)
