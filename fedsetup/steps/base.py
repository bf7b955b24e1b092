"""Step definitions and their optional capabilities.

A step is a :class:`Step` subclass. Steps the engine can probe mix in
:class:`Checkable`; steps it can perform mix in :class:`Executable`. The
registry inspects these capabilities with ``isinstance`` instead of looking
for optional attributes.
"""

from __future__ import annotations

import abc
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

from ..api import ProviderApis
from ..constants import Automatability, Provider
from ..contracts import StepCheckResult, StepContext, StepExecutionResult, StepInput, StepOutput
from .handling import with_check_handling, with_execution_handling


def key_input(key: str, produced_by: str, description: Optional[str] = None) -> StepInput:
    return StepInput(type="keyValue", key=key, produced_by=produced_by, description=description)


def completion_input(step_id: str, description: Optional[str] = None) -> StepInput:
    return StepInput(type="stepCompletion", step_id=step_id, description=description)


class Step(metaclass=abc.ABCMeta):
    """Static description of one provisioning step."""

    id: ClassVar[str]
    title: ClassVar[str]
    description: ClassVar[str] = ""
    details: ClassVar[str] = ""
    category: ClassVar[str] = ""
    activity: ClassVar[str] = ""
    provider: ClassVar[Provider]
    automatability: ClassVar[Automatability] = Automatability.AUTOMATED
    automatable: ClassVar[bool] = True
    requires: ClassVar[Tuple[str, ...]] = ()
    inputs: ClassVar[Tuple[StepInput, ...]] = ()
    outputs: ClassVar[Tuple[StepOutput, ...]] = ()

    def __init__(self, apis: ProviderApis) -> None:
        self.apis = apis

    @property
    def portals(self):
        return self.apis.portals

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        """Where an administrator performs this step by hand."""
        return None

    def verify_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        """Where an administrator confirms the step took effect."""
        return self.configure_url(outputs)

    def producers(self) -> Dict[str, str]:
        return {
            item.key: item.produced_by
            for item in self.inputs
            if item.key and item.produced_by
        }

    def describe(self, outputs: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        outputs = outputs or {}
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "details": self.details,
            "category": self.category,
            "activity": self.activity,
            "provider": self.provider.value,
            "automatability": self.automatability.value,
            "automatable": self.automatable,
            "requires": list(self.requires),
            "inputs": [item.to_dict() for item in self.inputs],
            "outputs": [item.to_dict() for item in self.outputs],
            "checkable": isinstance(self, Checkable),
            "executable": isinstance(self, Executable),
            "configureUrl": self.configure_url(outputs),
            "verifyUrl": self.verify_url(outputs),
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


class Checkable(metaclass=abc.ABCMeta):
    """Capability: the step's real-world state can be probed read-only."""

    id: ClassVar[str]
    check_requires: ClassVar[Tuple[str, ...]] = ()

    @abc.abstractmethod
    async def probe(self, context: StepContext) -> StepCheckResult:
        raise NotImplementedError

    async def check(self, context: StepContext) -> StepCheckResult:
        return await with_check_handling(self.id, self.check_requires, self.probe)(context)


class Executable(metaclass=abc.ABCMeta):
    """Capability: the step can perform its provisioning side effect."""

    id: ClassVar[str]
    required_outputs: ClassVar[Tuple[str, ...]] = ()

    @abc.abstractmethod
    async def apply(self, context: StepContext) -> StepExecutionResult:
        raise NotImplementedError

    async def execute(self, context: StepContext) -> StepExecutionResult:
        producers = self.producers() if isinstance(self, Step) else None
        return await with_execution_handling(
            self.id, self.required_outputs, self.apply, producers
        )(context)
