"""Render capability backed by the mermaid-cli (``mmdc``) executable.

Each attempt writes ``<render_id>.mmd`` and ``<render_id>.json`` into a
work directory and asks ``mmdc`` for ``<render_id>.svg``. Those files are
the attempt's transient artifacts; :class:`WorkDirArtifacts` removes them.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path

from studybuddy.diagrams.classify import DiagramKind
from studybuddy.errors import RenderError

logger = logging.getLogger(__name__)

SVG_NAMESPACE = "http://www.w3.org/2000/svg"

MERMAID_CONFIG: dict[str, object] = {
    "startOnLoad": False,
    "theme": "neutral",
    "securityLevel": "loose",
    "flowchart": {
        "useMaxWidth": True,
        "htmlLabels": True,
        "curve": "basis",
        "nodeSpacing": 30,
        "rankSpacing": 40,
        "padding": 15,
        "subGraphTitleMargin": {"top": 10, "bottom": 10},
    },
    "sequence": {"useMaxWidth": True},
    "themeVariables": {
        "fontSize": "14px",
        "fontFamily": "Inter, system-ui, sans-serif",
    },
}


def mermaid_config(theme: str = "neutral") -> dict[str, object]:
    """Mermaid config for *theme*; ``dark`` also gets transparent backgrounds."""
    config = json.loads(json.dumps(MERMAID_CONFIG))
    config["theme"] = theme
    if theme == "dark":
        config["themeVariables"].update(
            {"darkMode": True, "background": "transparent", "mainBkg": "transparent"}
        )
    return config


class MermaidCliRenderer:
    """Renders diagram source to SVG by shelling out to ``mmdc``."""

    def __init__(self, work_dir: Path, *, command: str = "mmdc", theme: str = "neutral") -> None:
        self.work_dir = work_dir
        self.command = command
        self.theme = theme

    async def render(self, source: str, render_id: str) -> str:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        input_path = self.work_dir / f"{render_id}.mmd"
        config_path = self.work_dir / f"{render_id}.json"
        output_path = self.work_dir / f"{render_id}.svg"

        input_path.write_text(source, encoding="utf-8")
        config_path.write_text(json.dumps(mermaid_config(self.theme)), encoding="utf-8")

        try:
            proc = await asyncio.create_subprocess_exec(
                self.command,
                "-i", str(input_path),
                "-o", str(output_path),
                "-c", str(config_path),
                "-b", "transparent",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise RenderError(f"Mermaid CLI not found: {self.command}") from exc

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            logger.debug("%s failed for %s: %s", self.command, render_id, message)
            raise RenderError(message or f"{self.command} exited with {proc.returncode}")

        if not output_path.exists():
            raise RenderError(f"{self.command} produced no output for {render_id}")
        return output_path.read_text(encoding="utf-8")


class WorkDirArtifacts:
    """Removes render artifacts from a :class:`MermaidCliRenderer` work dir."""

    def __init__(self, work_dir: Path) -> None:
        self.work_dir = work_dir

    def remove(self, render_id: str) -> None:
        """Delete every file belonging to *render_id*."""
        if not self.work_dir.exists():
            return
        for prefix in (render_id, f"d{render_id}"):
            for path in self.work_dir.glob(f"{prefix}.*"):
                path.unlink(missing_ok=True)

    def sweep(self) -> None:
        """Delete error logs orphaned by interrupted renders."""
        if not self.work_dir.exists():
            return
        for path in self.work_dir.glob("*mermaid-*.log"):
            logger.debug("Removing stray render log %s", path.name)
            path.unlink(missing_ok=True)


def svg_filename(kind: DiagramKind | None, when: datetime | None = None) -> str:
    """Download name for a rendered diagram."""
    stamp = (when or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"studybuddy-diagram-{kind or 'diagram'}-{stamp}.svg"


def save_svg(svg: str, path: Path) -> Path:
    """Write *svg* to *path*, adding the ``.svg`` suffix and namespace if missing."""
    if path.suffix != ".svg":
        path = path.with_name(f"{path.name}.svg")
    if "xmlns" not in svg:
        svg = svg.replace("<svg", f'<svg xmlns="{SVG_NAMESPACE}"', 1)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(svg, encoding="utf-8")
    return path
