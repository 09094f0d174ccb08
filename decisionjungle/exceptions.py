"""Exception types raised by decisionjungle."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid trainer configuration or training data."""


class DataFormatError(ValueError):
    """Malformed row in a delimited data file."""


class ModelFormatError(ValueError):
    """Malformed or inconsistent persisted node table."""


__all__ = ["ConfigurationError", "DataFormatError", "ModelFormatError"]
