"""Domain-level exceptions for the product assistant."""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for all assistant errors."""


class InvalidIdentifierError(AssistantError, ValueError):
    """An identifier (product or conversation) was empty or malformed."""
