"""Root conftest — runs before any test module imports."""

import os

# CI runners often set FORCE_COLOR=1, which makes Rich wrap CLI messages in
# ANSI escape codes and breaks plain-text assertions on command output.
# Clearing it before the CLI module creates its Console keeps output plain.
os.environ.pop("FORCE_COLOR", None)
os.environ["NO_COLOR"] = "1"
