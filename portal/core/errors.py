from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A handler needs a setting that was not configured at startup."""
