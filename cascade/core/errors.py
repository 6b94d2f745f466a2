"""Typed failures raised by the cascade agents."""
from typing import List, Optional


class CascadeError(Exception):
    """Base class for cascade pipeline failures."""


class GenerationFailure(CascadeError):
    """The backend produced no usable structured output for a step without a fallback."""

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step


class IncompleteAnalysis(CascadeError):
    """Tension analysis response is missing one or more required sections."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_fields = missing_fields or []


class StructuralViolation(CascadeError):
    """System model has incentive/flow endpoints that do not resolve."""

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = problems or []
