"""package.json access for modules in the dependency tree."""

import json
from pathlib import Path
from typing import Any

from ..errors import ManifestReadError

MANIFEST_NAME = "package.json"

# Dependency blocks read by the walker
DEPENDENCIES = "dependencies"
OPTIONAL_DEPENDENCIES = "optionalDependencies"
DEV_DEPENDENCIES = "devDependencies"


def read_manifest(module_path: Path) -> dict[str, Any]:
    """Load a module's package.json.

    Args:
        module_path: Module directory

    Returns:
        Parsed manifest object

    Raises:
        ManifestReadError: If the file is missing, unreadable, not JSON, or
            not a JSON object
    """
    manifest_path = module_path / MANIFEST_NAME
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ManifestReadError(str(manifest_path), "file not found")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestReadError(str(manifest_path), str(e))

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestReadError(str(manifest_path), f"invalid JSON ({e})")

    if not isinstance(data, dict):
        raise ManifestReadError(str(manifest_path), "top-level value is not an object")
    return data


def dependency_names(manifest: dict[str, Any], field: str) -> list[str]:
    """Names declared in a dependency block, in declaration order.

    A missing or malformed block yields an empty list.
    """
    block = manifest.get(field)
    if not isinstance(block, dict):
        return []
    return [name for name in block if isinstance(name, str)]
