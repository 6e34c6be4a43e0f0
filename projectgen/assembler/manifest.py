"""Project manifest files: ``package.json``, ``.env.example`` and ``README.md``.

Built from the merged integration bundle after code generation. The package
manifest and the environment template are authoritative and overwrite any
model-written version; the README only fills the gap if the model did not
write one.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from projectgen.models import EnvVar, GeneratedFile, IntegrationBundle, ProjectConfig
from projectgen.templates import TemplateRenderer
from projectgen.utils import sanitize_name

BASE_DEPENDENCIES: dict[str, str] = {
    "next": "^15.0.0",
    "react": "^19.0.0",
    "react-dom": "^19.0.0",
}

BASE_DEV_DEPENDENCIES: dict[str, str] = {
    "@types/node": "^20.0.0",
    "@types/react": "^19.0.0",
    "@types/react-dom": "^19.0.0",
    "typescript": "^5.0.0",
    "tailwindcss": "^3.4.0",
    "postcss": "^8.0.0",
    "autoprefixer": "^10.0.0",
    "eslint": "^8.0.0",
    "eslint-config-next": "^15.0.0",
}

BASE_SCRIPTS: dict[str, str] = {
    "dev": "next dev",
    "build": "next build",
    "start": "next start",
    "lint": "next lint",
}

BASE_ENV_VARS: list[EnvVar] = [
    EnvVar(
        name="NEXT_PUBLIC_APP_URL",
        description="Your application URL",
        example="http://localhost:3000",
    ),
]


def build_package_json(
    project_name: str,
    dependencies: Mapping[str, str],
    dev_dependencies: Mapping[str, str],
) -> dict[str, Any]:
    """Return the ``package.json`` document for the project."""
    return {
        "name": sanitize_name(project_name) or "my-app",
        "version": "0.1.0",
        "private": True,
        "scripts": dict(BASE_SCRIPTS),
        "dependencies": {**BASE_DEPENDENCIES, **dependencies},
        "devDependencies": {**BASE_DEV_DEPENDENCIES, **dev_dependencies},
    }


def build_env_template(
    env_vars: Iterable[EnvVar],
    project_name: str,
    renderer: Optional[TemplateRenderer] = None,
) -> str:
    """Render ``.env.example`` with public and server-side variables grouped."""
    renderer = renderer or TemplateRenderer()
    seen: set[str] = set()
    all_vars: list[EnvVar] = []
    for var in [*BASE_ENV_VARS, *env_vars]:
        if var.name not in seen:
            seen.add(var.name)
            all_vars.append(var)

    groups = [
        ("Public Variables (exposed to browser)", [v for v in all_vars if v.public]),
        ("Private Variables (server-side only)", [v for v in all_vars if not v.public]),
    ]
    return renderer.render(
        "manifest/env_example.j2", {"project_name": project_name, "groups": groups}
    )


def build_readme(
    project_config: ProjectConfig,
    post_install: list[str],
    warnings: list[str],
    renderer: Optional[TemplateRenderer] = None,
) -> str:
    renderer = renderer or TemplateRenderer()
    return renderer.render(
        "manifest/setup.md.j2",
        {
            "project_name": project_config.project_name,
            "template": project_config.template,
            "post_install": post_install,
            "warnings": warnings,
        },
    )


def assemble_manifest(
    project_config: ProjectConfig,
    bundle: IntegrationBundle,
    renderer: Optional[TemplateRenderer] = None,
) -> list[GeneratedFile]:
    """Build the manifest files for the project.

    Args:
        project_config: Project name and template.
        bundle: Merged integration contributions (dependencies, env vars,
            post-install notes, warnings).
        renderer: Template renderer; defaults to the packaged templates.

    Returns:
        ``package.json`` and ``.env.example`` flagged to overwrite, then a
        ``README.md`` that does not.
    """
    renderer = renderer or TemplateRenderer()
    package_json = build_package_json(
        project_config.project_name, bundle.dependencies, bundle.dev_dependencies
    )
    return [
        GeneratedFile(
            path="package.json",
            content=json.dumps(package_json, indent=2) + "\n",
            overwrite=True,
        ),
        GeneratedFile(
            path=".env.example",
            content=build_env_template(bundle.env_vars, project_config.project_name, renderer),
            overwrite=True,
        ),
        GeneratedFile(
            path="README.md",
            content=build_readme(project_config, bundle.post_install, bundle.warnings, renderer),
        ),
    ]
