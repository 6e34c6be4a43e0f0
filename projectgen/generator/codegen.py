"""Per-batch code generation.

One completion call per ``Batch``. The prompt carries only the slice of the
architecture the batch covers, plus the list of files earlier batches already
produced so the model can import from them instead of regenerating them.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from projectgen.errors import BatchGenerationError, GenerationTimeout
from projectgen.generator.parsing import decode_model
from projectgen.llm_client import LLMClient
from projectgen.models import (
    Architecture,
    Batch,
    BatchOutput,
    GenerationRequest,
    ProjectConfig,
    UnitKind,
)
from projectgen.templates import TemplateRenderer

CODEGEN_SYSTEM_PROMPT = (
    "You write complete, production-ready source files. "
    "Answer with one JSON object containing 'files' and 'integrationCode'."
)


def batch_architecture(batch: Batch, architecture: Architecture) -> dict[str, Any]:
    """The architecture restricted to the units of *batch*."""
    by_kind: dict[UnitKind, list[dict[str, Any]]] = {kind: [] for kind in UnitKind}
    for unit in batch.units:
        by_kind[unit.kind].append(unit.spec)
    return {
        "template": architecture.template,
        "pages": by_kind[UnitKind.PAGE],
        "components": by_kind[UnitKind.COMPONENT],
        "routes": by_kind[UnitKind.API_ROUTE],
        "integrations": architecture.integrations,
    }


class CodeGenerator:
    """Generates the files for one batch.

    Args:
        llm: Completion client.
        renderer: Template renderer; defaults to the packaged templates.
        max_tokens: Completion length per call, normally the batch token budget.
    """

    def __init__(
        self,
        llm: LLMClient,
        renderer: Optional[TemplateRenderer] = None,
        max_tokens: int = 4096,
    ) -> None:
        self.llm = llm
        self.renderer = renderer or TemplateRenderer()
        self.max_tokens = max_tokens

    def build_prompt(
        self, batch: Batch, project_config: ProjectConfig, architecture: Architecture
    ) -> str:
        return self.renderer.render(
            "prompts/code_generation.j2",
            {
                "project_name": project_config.project_name,
                "template": project_config.template,
                "branding": project_config.branding,
                "integrations": project_config.integrations,
                "architecture_json": json.dumps(
                    batch_architecture(batch, architecture), indent=2, sort_keys=True
                ),
                "units": batch.units,
                "is_first": batch.is_first,
                "batch_index": batch.index,
                "batch_total": batch.total,
                "previous_files": batch.previous_files,
            },
        )

    def build_instruction(self, batch: Batch) -> str:
        if batch.is_first and batch.total == 1:
            return "Generate the code files based on the architecture definition."
        return (
            f"Generate batch {batch.index} of {batch.total}. "
            f"Only generate files for: {batch.summary()}"
        )

    async def generate(
        self,
        batch: Batch,
        request: GenerationRequest,
        project_config: ProjectConfig,
        architecture: Architecture,
        model: str,
    ) -> BatchOutput:
        """Run the completion call for *batch* and decode its files.

        Raises:
            GenerationTimeout: The call exceeded its deadline.
            BatchGenerationError: Transport failure or undecodable output;
                carries the batch index.
        """
        prompt = "\n\n".join(
            [self.build_prompt(batch, project_config, architecture), self.build_instruction(batch)]
        )
        response = await self.llm.generate(
            prompt,
            model=model,
            system=CODEGEN_SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            seed=request.sampling_seed,
        )
        if response.timed_out:
            raise GenerationTimeout(
                f"Batch {batch.index}/{batch.total} timed out: {response.error}"
            )
        if not response.success:
            raise BatchGenerationError(
                batch.index, response.error or "completion failed", retryable=True
            )

        decoded = decode_model(response.text, BatchOutput)
        if not decoded.ok:
            raise BatchGenerationError(batch.index, decoded.error)
        return decoded.value
