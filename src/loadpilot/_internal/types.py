"""Shared type aliases for LoadPilot."""

from __future__ import annotations

# Environment variables passed to a worker process.
WorkerEnv = dict[str, str]

# Worker command line template; items may contain ``{placeholder}`` fields.
CommandTemplate = tuple[str, ...]

# Raw JSON object as decoded from a worker result file.
JsonObject = dict[str, object]
