"""Version information for the orchestrator.

The version is read from the VERSION file shipped next to this module,
falling back to the installed distribution metadata.
"""

import os
from importlib import metadata
from pathlib import Path


def get_version() -> str:
    """Get the orchestrator version.

    Returns:
        Version string (e.g., "0.3.0")
    """
    version_file = Path(__file__).parent / "VERSION"
    if version_file.exists():
        version = version_file.read_text().strip()
        if version:
            return version

    try:
        return metadata.version("fleet-orchestrator")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__version__ = get_version()


def get_commit() -> str:
    """Get the commit SHA from FLEET_GIT_SHA, or "unknown"."""
    return os.getenv("FLEET_GIT_SHA", "").strip() or "unknown"
