"""Jinja2 rendering for prompts and manifest files.

Provides the ``TemplateRenderer`` class which loads Jinja2 templates from the
``projectgen/jinja/`` directory. Prompt templates live under ``prompts/`` and
project manifest templates (``.env.example``, setup notes) under
``manifest/``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "jinja"


class TemplateRenderer:
    """Renders ``.j2`` templates with a context dictionary.

    Undefined variables raise instead of rendering as empty strings, so a
    prompt can never silently lose a section.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([], default_for_string=False),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"prompts/code_generation.j2"``).
            context: Dictionary of variables available inside the template.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)
