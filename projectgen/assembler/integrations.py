"""Integration loading.

Resolves the request's ``{category: provider}`` map into an
``IntegrationBundle``. Manifests come from the built-in catalog or, when a
templates directory is configured, from disk::

    <templates_dir>/<category>/<provider>/integration.json
    <templates_dir>/<category>/<provider>/<files listed in the manifest>

An unknown provider is a warning unless its category is required by the
template, in which case ``IntegrationLoadError`` is raised.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from projectgen.assembler.catalog import BUILTIN_INTEGRATIONS
from projectgen.errors import IntegrationLoadError
from projectgen.models import (
    AppliedIntegration,
    IntegrationBundle,
    IntegrationManifest,
)

MANIFEST_FILENAME = "integration.json"

# Categories and providers double as directory names under templates_dir.
_NAME_RE = re.compile(r"[a-z0-9][a-z0-9-]*")


class IntegrationLoader:
    """Loads integration manifests and folds them into one bundle.

    Args:
        templates_dir: Optional directory of on-disk manifests. Disk entries
            take precedence over the built-in catalog.
        catalog: Built-in manifests keyed by category, then provider.
    """

    def __init__(
        self,
        templates_dir: Optional[Path] = None,
        catalog: Optional[Mapping[str, Mapping[str, Mapping[str, Any]]]] = None,
    ) -> None:
        self.templates_dir = Path(templates_dir) if templates_dir else None
        self.catalog = BUILTIN_INTEGRATIONS if catalog is None else catalog

    # ------------------------------------------------------------------
    # Manifest resolution
    # ------------------------------------------------------------------

    def resolve(self, category: str, provider: str) -> IntegrationManifest:
        """Return the manifest for ``category/provider``.

        Raises:
            IntegrationLoadError: The names are not lowercase slugs or no
                valid manifest exists for them.
        """
        for name in (category, provider):
            if not _NAME_RE.fullmatch(name):
                raise IntegrationLoadError(category, provider, f"invalid integration name: {name!r}")

        if self.templates_dir is not None:
            manifest_path = self.templates_dir / category / provider / MANIFEST_FILENAME
            if manifest_path.is_file():
                return self._load_from_disk(category, provider, manifest_path)

        entry = self.catalog.get(category, {}).get(provider)
        if entry is None:
            raise IntegrationLoadError(category, provider, "unsupported integration provider")
        data = {**entry, "category": category, "provider": provider}
        return self._validate(category, provider, data)

    def _load_from_disk(
        self, category: str, provider: str, manifest_path: Path
    ) -> IntegrationManifest:
        try:
            raw = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise IntegrationLoadError(
                category, provider, f"cannot read {MANIFEST_FILENAME}: {exc}"
            ) from exc

        integration_dir = manifest_path.parent.resolve()
        files: list[dict[str, Any]] = []
        for rel_path in _listed_files(raw.get("files")):
            source = (integration_dir / rel_path).resolve()
            if not source.is_relative_to(integration_dir):
                raise IntegrationLoadError(
                    category, provider, f"listed file outside integration directory: {rel_path}"
                )
            if not source.is_file():
                raise IntegrationLoadError(category, provider, f"listed file not found: {rel_path}")
            try:
                content = source.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise IntegrationLoadError(
                    category, provider, f"cannot read {rel_path}: {exc}"
                ) from exc
            files.append({"path": rel_path, "content": content})

        env_vars = [
            {"name": var} if isinstance(var, str) else var for var in raw.get("envVars", [])
        ]
        data = {
            "provider": raw.get("provider", provider),
            "category": raw.get("category", raw.get("type", category)),
            "version": raw.get("version", ""),
            "description": raw.get("description", ""),
            "dependencies": raw.get("dependencies", {}),
            "dev_dependencies": raw.get("devDependencies", {}),
            "env_vars": env_vars,
            "files": files,
            "requires": raw.get("requires", []),
            "conflicts": raw.get("conflicts", []),
            "post_install": raw.get("postInstallInstructions", raw.get("postInstall", "")),
        }
        return self._validate(category, provider, data)

    @staticmethod
    def _validate(category: str, provider: str, data: dict[str, Any]) -> IntegrationManifest:
        try:
            manifest = IntegrationManifest.model_validate(data)
        except ValidationError as exc:
            raise IntegrationLoadError(category, provider, f"invalid manifest: {exc}") from exc
        env_vars = [
            var if var.provider else var.model_copy(update={"provider": provider})
            for var in manifest.env_vars
        ]
        return manifest.model_copy(update={"env_vars": env_vars})

    # ------------------------------------------------------------------
    # Bundle assembly
    # ------------------------------------------------------------------

    def load(
        self, integrations: Mapping[str, str], required: Iterable[str] = ()
    ) -> IntegrationBundle:
        """Resolve every selected integration and merge their contributions.

        Integrations are applied in category order so the bundle does not
        depend on the mapping's insertion order.

        Args:
            integrations: ``{category: provider}``; empty providers are skipped.
            required: Categories the template cannot work without.

        Raises:
            IntegrationLoadError: A provider in a required category could not
                be resolved.
        """
        required = set(required)
        active = {category: provider for category, provider in integrations.items() if provider}
        bundle = IntegrationBundle()

        for category, provider in sorted(active.items()):
            try:
                manifest = self.resolve(category, provider)
            except IntegrationLoadError as exc:
                if category in required:
                    raise
                bundle.warnings.append(f"Skipped integration {exc.message}")
                continue

            self._apply(bundle, manifest)

            for needed in manifest.requires:
                if needed not in active:
                    bundle.warnings.append(
                        f"{category}/{provider} recommends also adding a {needed} integration"
                    )
            for clash in manifest.conflicts:
                other_category, _, other_provider = clash.partition("/")
                if active.get(other_category) == other_provider:
                    bundle.warnings.append(f"{category}/{provider} conflicts with {clash}")

        for category in sorted(required):
            if category not in active:
                bundle.warnings.append(f"Template requires a {category} integration")

        return bundle

    @staticmethod
    def _apply(bundle: IntegrationBundle, manifest: IntegrationManifest) -> None:
        bundle.files.extend(manifest.files)
        bundle.dependencies.update(manifest.dependencies)
        bundle.dev_dependencies.update(manifest.dev_dependencies)
        known = {var.name for var in bundle.env_vars}
        bundle.env_vars.extend(var for var in manifest.env_vars if var.name not in known)
        if manifest.post_install:
            bundle.post_install.append(manifest.post_install)
        bundle.applied.append(
            AppliedIntegration(
                category=manifest.category,
                provider=manifest.provider,
                version=manifest.version,
            )
        )


def _listed_files(files: Any) -> list[str]:
    """Flatten a manifest ``files`` entry (a list, or groups of lists)."""
    if not files:
        return []
    if isinstance(files, dict):
        return [path for group in files.values() if group for path in group]
    return list(files)


