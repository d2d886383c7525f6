"""
rtvm Plugin System - plugin checkouts and their git remotes.

This package handles:
- Git operations on plugin checkouts
- The plugin registry (add, list, remove, update)
- Short-name resolution through the plugin index
"""

__all__ = ["git_ops", "index", "registry"]
