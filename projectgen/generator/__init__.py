"""Model-driven generation: architecture planning and batched code generation.

Key classes:
    ArchitecturePlanner - Request -> validated Architecture
    BatchScheduler      - Units -> bounded batches, run as a sequential fold
    CodeGenerator       - Batch -> decoded BatchOutput
"""

from .codegen import CodeGenerator, batch_architecture
from .parsing import DecodeFailure, DecodeResult, decode_model, extract_json_object
from .planner import ArchitecturePlanner
from .scheduler import BatchScheduler, collect_units, describe_file

__all__ = [
    # Planning
    "ArchitecturePlanner",
    # Scheduling
    "BatchScheduler",
    "collect_units",
    "describe_file",
    # Code generation
    "CodeGenerator",
    "batch_architecture",
    # Decoding
    "DecodeFailure",
    "DecodeResult",
    "decode_model",
    "extract_json_object",
]
