"""node-gyp argument assembly.

The base arguments point node-gyp at the target runtime's headers and import
library. Modules that publish prebuilt binaries describe where those binaries
go in the "binary" block of their package.json, e.g.:

    "binary": {
        "module_name": "addon",
        "module_path": "./lib/binding/{configuration}/{node_abi}-{platform}-{arch}",
        "napi_versions": [3, 6]
    }

Every key except napi_versions is forwarded to node-gyp as --<key>=<value>
after placeholder substitution, so the binary lands where the module's
loader will look for it.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

from ..config import RebuildConfig, detect_libc_family
from ..errors import ManifestReadError
from ..packages.manifest import read_manifest
from ..packages.runtime_assets import RuntimeAssets

logger = logging.getLogger(__name__)

BINARY_FIELD = "binary"
NAPI_VERSIONS_KEY = "napi_versions"
MODULE_PATH_KEY = "module_path"

_PLACEHOLDER_RE = re.compile(r"\{[A-Za-z0-9_]+\}")


def base_args(config: RebuildConfig, assets: RuntimeAssets) -> list[str]:
    """Arguments every module build starts with."""
    args = [
        "rebuild",
        f"--node_lib_file={assets.node_lib_file}",
        f"--nodedir={assets.node_dir}",
        "--verbose",
    ]
    if config.debug:
        args.append("--debug")
    return args


def max_napi_version(napi_versions: Any) -> Optional[int]:
    """Highest numeric entry of a napi_versions list.

    Entries may be numbers or numeric strings; anything else is ignored.

    Returns:
        The maximum, or None if the value is not a list or has no numeric entry
    """
    if not isinstance(napi_versions, list):
        return None
    numbers: list[int] = []
    for entry in napi_versions:
        if isinstance(entry, bool):
            continue
        try:
            numbers.append(int(str(entry).strip()))
        except ValueError:
            logger.debug("ignoring non-numeric napi version %r", entry)
    return max(numbers) if numbers else None


def _stringify(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def substitute_placeholders(
    key: str,
    value: str,
    module_path: Path,
    config: RebuildConfig,
    module_version: Optional[str],
    napi_build_version: Optional[int],
    binary: dict[str, Any],
    libc: str,
) -> str:
    """Resolve one binary-block value.

    Replacements run once each, in a fixed order. Placeholders that survive
    are logged and left in the value.
    """
    if key == MODULE_PATH_KEY:
        value = os.path.abspath(os.path.join(str(module_path), value))

    value = (
        value.replace("{configuration}", str(config.build_type))
        .replace("{platform}", config.platform)
        .replace("{arch}", config.arch)
        .replace("{libc}", libc)
    )
    if module_version is not None:
        value = value.replace("{version}", module_version)
    if napi_build_version is not None:
        value = value.replace("{napi_build_version}", str(napi_build_version))

    for replace_key, replace_value in binary.items():
        if isinstance(replace_value, str):
            value = value.replace(f"{{{replace_key}}}", replace_value)

    leftover = _PLACEHOLDER_RE.findall(value)
    if leftover:
        logger.info("unresolved placeholders in binary.%s: %s", key, ", ".join(leftover))
    return value


def binary_field_args(module_path: Path, config: RebuildConfig, manifest: dict[str, Any]) -> list[str]:
    """Translate a module's "binary" block into node-gyp flags.

    Args:
        module_path: Module root, used to make module_path absolute
        config: Run configuration supplying configuration/platform/arch
        manifest: The module's parsed package.json

    Returns:
        One --<key>=<value> flag per usable key, in manifest order
    """
    binary = manifest.get(BINARY_FIELD)
    if not isinstance(binary, dict) or not binary:
        return []

    version = manifest.get("version")
    module_version = version if isinstance(version, str) else None
    napi_build_version = max_napi_version(binary.get(NAPI_VERSIONS_KEY))
    libc = detect_libc_family() or "unknown"

    flags: list[str] = []
    for key, raw_value in binary.items():
        if key == NAPI_VERSIONS_KEY:
            continue
        value = _stringify(raw_value)
        if value is None:
            logger.debug("skipping non-scalar binary.%s", key)
            continue
        resolved = substitute_placeholders(key, value, module_path, config, module_version, napi_build_version, binary, libc)
        flags.append(f"--{key}={resolved}")
    return flags


def build_args(module_path: Path, config: RebuildConfig, assets: RuntimeAssets) -> list[str]:
    """Full node-gyp argument list for one module.

    A module whose package.json cannot be read is built with the base
    arguments only.
    """
    args = base_args(config, assets)
    try:
        manifest = read_manifest(module_path)
    except ManifestReadError as e:
        logger.warning("Building %s without binary flags: %s", module_path, e)
        return args
    args.extend(binary_field_args(module_path, config, manifest))
    return args
