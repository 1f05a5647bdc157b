"""StudyBuddy: study-assistant toolkit built around Mermaid diagram repair."""

__version__ = "0.4.0"
