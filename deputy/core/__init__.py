from deputy.core.constants import (
    HookEventType as HookEventType,
    PermissionMode as PermissionMode,
    StopReason as StopReason,
    ToolName as ToolName,
)
from deputy.core.exceptions import (
    AgentBusyError as AgentBusyError,
    ConfigurationError as ConfigurationError,
    DeputyError as DeputyError,
    PathTraversalError as PathTraversalError,
    ProviderError as ProviderError,
)
from deputy.core.types import (
    Cost as Cost,
    ToolAnnotations as ToolAnnotations,
)
from deputy.core.utils import format_cost as format_cost, truncate_string as truncate_string
