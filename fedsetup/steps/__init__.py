"""Step catalogue of the federation setup."""

from __future__ import annotations

from ..api import ProviderApis
from .base import Checkable, Executable, Step
from .google import GOOGLE_STEPS
from .microsoft import MICROSOFT_STEPS
from .registry import StepRegistry

ALL_STEPS = GOOGLE_STEPS + MICROSOFT_STEPS


def build_registry(apis: ProviderApis) -> StepRegistry:
    """Instantiate every step against ``apis`` in workflow order."""
    return StepRegistry(step_cls(apis) for step_cls in ALL_STEPS)


__all__ = [
    "ALL_STEPS",
    "Checkable",
    "Executable",
    "Step",
    "StepRegistry",
    "build_registry",
]
