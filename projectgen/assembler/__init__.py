"""Project assembly: integrations, file merging, branding and manifests.

Key classes / functions:
    IntegrationLoader  - {category: provider} -> IntegrationBundle
    merge_files        - Path-keyed merge with overwrite precedence
    apply_branding     - Placeholder substitution over a file set
    assemble_manifest  - package.json, .env.example and README.md
"""

from .catalog import BUILTIN_INTEGRATIONS, catalog_providers
from .integrations import IntegrationLoader
from .manifest import assemble_manifest, build_env_template, build_package_json, build_readme
from .merger import apply_branding, branding_placeholders, merge_files, merge_into

__all__ = [
    # Integrations
    "IntegrationLoader",
    "BUILTIN_INTEGRATIONS",
    "catalog_providers",
    # Merging
    "merge_files",
    "merge_into",
    "apply_branding",
    "branding_placeholders",
    # Manifest
    "assemble_manifest",
    "build_env_template",
    "build_package_json",
    "build_readme",
]
