"""Multi-node container bulk actions and node-to-node migration."""

from fleet.version import __version__

__all__ = ["__version__"]
