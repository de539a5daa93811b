"""Custom exception hierarchy for LoadPilot."""

from __future__ import annotations


class LoadPilotError(Exception):
    """Base exception for all LoadPilot errors.

    All custom exceptions in LoadPilot inherit from this class, making it
    easy to catch any LoadPilot-specific error with a single except clause.
    """


class ConfigError(LoadPilotError):
    """Raised when configuration is invalid or missing.

    Examples:
        - ``--type`` is missing or names an unknown scenario.
        - A numeric flag is not a number or is not positive.
        - A ``LOADPILOT_*`` environment variable has an invalid value.
    """


class SpawnError(LoadPilotError):
    """Raised when a worker process cannot be started.

    Never escapes the launcher: it is converted into a failed
    ``WorkerResult`` so one broken spawn cannot abort the scheduler.
    """


class ResultFileError(LoadPilotError):
    """Raised when a worker result file is unreadable or malformed.

    Examples:
        - The file is not valid JSON.
        - The JSON document is not an object or lacks ``workerId``.
    """


class EngineError(LoadPilotError):
    """Raised when the orchestration loop fails unexpectedly."""
