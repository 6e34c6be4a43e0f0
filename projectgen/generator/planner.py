"""Architecture planning.

Turns a generation request into a validated ``Architecture`` with a single
completion call. The prompt is rendered from ``prompts/architecture.j2`` and
the response is decoded strictly; anything that is not a well-formed
architecture is a ``PlanningError``.
"""

from __future__ import annotations

from typing import Optional

from projectgen.errors import GenerationTimeout, PlanningError
from projectgen.generator.parsing import decode_model
from projectgen.llm_client import LLMClient
from projectgen.models import Architecture, GenerationRequest, ProjectConfig
from projectgen.templates import TemplateRenderer

PLANNER_SYSTEM_PROMPT = (
    "You design web application architectures. "
    "Answer with one JSON object that matches the requested shape exactly."
)


class ArchitecturePlanner:
    """Plans pages, components and routes for one request.

    Args:
        llm: Completion client.
        renderer: Template renderer; defaults to the packaged templates.
        max_tokens: Upper bound on the planner's completion length.
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

    def build_prompt(self, request: GenerationRequest, project_config: ProjectConfig) -> str:
        return self.renderer.render(
            "prompts/architecture.j2",
            {
                "project_name": project_config.project_name,
                "template": project_config.template,
                "description": request.description.strip(),
                "vision": request.vision or "",
                "mission": request.mission or "",
                "inspirations": request.inspirations,
                "integrations": project_config.integrations,
            },
        )

    async def plan(
        self,
        request: GenerationRequest,
        project_config: ProjectConfig,
        model: str,
    ) -> Architecture:
        """Produce the architecture for *request*.

        Raises:
            GenerationTimeout: The completion call exceeded its deadline.
            PlanningError: Transport failure, or output that does not decode
                into an ``Architecture``.
        """
        response = await self.llm.generate(
            self.build_prompt(request, project_config),
            model=model,
            system=PLANNER_SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            seed=request.sampling_seed,
        )
        if response.timed_out:
            raise GenerationTimeout(f"Architecture planning timed out: {response.error}")
        if not response.success:
            raise PlanningError(
                f"Architecture planning failed: {response.error}", retryable=True
            )

        decoded = decode_model(response.text, Architecture)
        if not decoded.ok:
            raise PlanningError(f"Architecture output rejected ({decoded.failure.value}): {decoded.error}")

        architecture = decoded.value
        # The selected template and integrations are authoritative, not the model's echo.
        return architecture.model_copy(
            update={
                "template": project_config.template,
                "integrations": dict(project_config.integrations),
            }
        )
