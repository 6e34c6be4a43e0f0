"""projectgen: turn a project description into generated source files.

Key classes:
    GenerationOrchestrator - End-to-end request handling
    Config                 - Typed configuration, loadable from ``PG_*`` env vars
    GenerationRequest      - Inbound request model
    GenerationResult       - Outbound result model
"""

from .config import Config
from .errors import ErrorKind, GenerationError, status_for_kind
from .models import GenerationRequest, GenerationResult
from .orchestrator import ConsoleReporter, GenerationObserver, GenerationOrchestrator, PipelineState

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ConsoleReporter",
    "ErrorKind",
    "GenerationError",
    "GenerationObserver",
    "GenerationOrchestrator",
    "GenerationRequest",
    "GenerationResult",
    "PipelineState",
    "status_for_kind",
]
