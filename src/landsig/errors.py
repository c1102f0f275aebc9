#!/usr/bin/env python3
"""landsig.errors

Error kinds raised by signature validation and comparison.

Data problems are ValueErrors so callers that only care about "bad input"
can catch one thing. Cancellation is a RuntimeError: the input was fine,
the run was stopped.
"""

from __future__ import annotations


class SignatureError(ValueError):
    """Base class for signature data problems."""


class DimensionMismatch(SignatureError):
    """Signature vectors disagree on width or category ordering."""


class EmptyCollection(SignatureError):
    """A collection (or matrix side) has zero tiles."""


class InvalidDistribution(SignatureError):
    """A signature has negative entries or does not sum to ~1."""


class UndefinedEntry(SignatureError):
    """A signature has NaN entries and the missing policy is 'error'."""


class ComparisonCancelled(RuntimeError):
    """The divergence computation was stopped through its cancel event."""
