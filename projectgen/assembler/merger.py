"""File-set merging and branding substitution.

The merge rule: a file enters the path map when its path is absent, or when
it carries ``overwrite=True``. Everything else is dropped. Paths keep the
position of their first insertion, so folding several sets one after another
gives the same result as merging them in a single pass.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import reduce
from typing import Optional

from projectgen.models import Branding, GeneratedFile

FileMap = dict[str, GeneratedFile]


def merge_into(base: Mapping[str, GeneratedFile], files: Iterable[GeneratedFile]) -> FileMap:
    """Return a new path map with *files* folded onto *base*."""
    merged = dict(base)
    for file in files:
        if file.path not in merged or file.overwrite:
            merged[file.path] = file
    return merged


def merge_files(*file_sets: Iterable[GeneratedFile]) -> list[GeneratedFile]:
    """Merge file sets in order; earlier sets win unless a later file overwrites."""
    return list(reduce(merge_into, file_sets, {}).values())


# ---------------------------------------------------------------------------
# Branding
# ---------------------------------------------------------------------------


def branding_placeholders(branding: Branding, project_name: str) -> dict[str, str]:
    """Placeholder -> value pairs. Unset optional fields are left untouched."""
    values: dict[str, Optional[str]] = {
        "projectName": project_name,
        "primaryColor": branding.primary_color,
        "secondaryColor": branding.secondary_color,
        "backgroundColor": branding.background_color,
        "textColor": branding.text_color,
        "fontFamily": branding.font_family,
    }
    return {"{{" + name + "}}": value for name, value in values.items() if value}


def apply_branding(
    files: Iterable[GeneratedFile], branding: Branding, project_name: str
) -> list[GeneratedFile]:
    """Substitute ``{{projectName}}``, ``{{primaryColor}}`` and friends in every file."""
    replacements = branding_placeholders(branding, project_name)
    branded: list[GeneratedFile] = []
    for file in files:
        content = file.content
        for placeholder, value in replacements.items():
            content = content.replace(placeholder, value)
        if content != file.content:
            file = file.model_copy(update={"content": content})
        branded.append(file)
    return branded
