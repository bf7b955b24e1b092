"""fedsetup: Google Workspace and Microsoft Entra ID federation setup engine."""

from .context import AppContext, get_context, init_context, reset_context
from .contracts import StepCheckResult, StepContext, StepExecutionResult, StepStatusInfo
from .error_manager import ErrorManager
from .persistence import get_repository
from .runner import StepRunner
from .scheduler import AutoCheckScheduler
from .state import WorkflowState, WorkflowStore
from .steps import StepRegistry, build_registry
from .workflow import SetupWorkflow

__version__ = "0.1.0"
__all__ = [
    "AppContext",
    "AutoCheckScheduler",
    "ErrorManager",
    "SetupWorkflow",
    "StepCheckResult",
    "StepContext",
    "StepExecutionResult",
    "StepRegistry",
    "StepRunner",
    "StepStatusInfo",
    "WorkflowState",
    "WorkflowStore",
    "build_registry",
    "get_context",
    "get_repository",
    "init_context",
    "reset_context",
]
