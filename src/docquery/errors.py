"""Error taxonomy for the query pipeline."""

from __future__ import annotations


class DocQueryError(Exception):
    """Base class for pipeline failures surfaced to callers."""


class TransportError(DocQueryError):
    """The LLM transport call failed (network, auth, rate limit)."""


class DecodeError(DocQueryError):
    """Every JSON repair tier failed on a model response."""


class SelectionFormatError(DocQueryError):
    """A selection response carried no list of fragment names."""


class DivisionValidationError(DocQueryError):
    """A division response carried no usable fragment list."""
