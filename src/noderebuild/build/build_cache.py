"""Per-module build cache marker and artifact relocation.

After a successful build two things are left behind in the module:

    <module>/bin/<platform>-<arch>-<abi>/<name>.node   relocated artifact
    <module>/build/<Debug|Release>/.forge-meta         "<arch>--<abi>"

The marker makes the next run skip the module as long as the target has not
changed. Validity is an exact string comparison with the current target.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

from ..config import RebuildConfig
from ..errors import CacheIOError

logger = logging.getLogger(__name__)

META_FILE_NAME = ".forge-meta"


def build_dir(module_path: Path, config: RebuildConfig) -> Path:
    """node-gyp output directory for the configured variant."""
    return module_path / "build" / str(config.build_type)


def meta_path(module_path: Path, config: RebuildConfig) -> Path:
    """Location of the cache marker for the configured variant."""
    return build_dir(module_path, config) / META_FILE_NAME


def already_built(module_path: Path, config: RebuildConfig) -> bool:
    """True if the marker exists and matches the current arch--abi exactly.

    Raises:
        CacheIOError: If the marker exists but cannot be read or decoded
    """
    path = meta_path(module_path, config)
    if not path.is_file():
        return False
    try:
        meta = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CacheIOError(f"Failed to read cache marker {path}: {e}") from e
    return meta == config.meta_data


def write_metadata(module_path: Path, config: RebuildConfig) -> Path:
    """Write the cache marker, creating the variant directory if needed.

    Raises:
        CacheIOError: If the marker cannot be written
    """
    path = meta_path(module_path, config)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(config.meta_data, encoding="utf-8")
    except OSError as e:
        raise CacheIOError(f"Failed to write cache marker {path}: {e}") from e
    return path


def find_built_artifact(module_path: Path, config: RebuildConfig) -> Optional[Path]:
    """First *.node file (by name) in the variant output directory.

    A file named exactly ".node" is not an artifact.
    """
    location = build_dir(module_path, config)
    logger.debug("searching for .node file in %s", location)
    if not location.is_dir():
        return None
    try:
        names = sorted(entry.name for entry in location.iterdir())
    except OSError as e:
        raise CacheIOError(f"Failed to list {location}: {e}") from e
    for name in names:
        if name != ".node" and name.endswith(".node"):
            return location / name
    return None


def prebuilt_dir(module_path: Path, config: RebuildConfig) -> Path:
    """Directory prebuilt-binary loaders search: bin/<platform>-<arch>-<abi>."""
    return module_path / "bin" / f"{config.platform}-{config.arch}-{config.abi}"


def replace_existing_native_module(module_path: Path, config: RebuildConfig) -> Optional[Path]:
    """Copy the freshly built artifact where prebuilt loaders expect it.

    Args:
        module_path: Module root
        config: Run configuration (variant, target and copy switch)

    Returns:
        The destination path, or None when there was nothing to copy or
        copying is disabled

    Raises:
        CacheIOError: If the copy fails
    """
    artifact = find_built_artifact(module_path, config)
    if artifact is None:
        logger.debug("no .node artifact under %s", build_dir(module_path, config))
        return None
    logger.debug("found .node file %s", artifact)
    if config.disable_pre_gyp_copy:
        return None

    destination_dir = prebuilt_dir(module_path, config)
    destination = destination_dir / f"{module_path.name}.node"
    logger.debug("copying to prebuilt place: %s", destination)
    try:
        destination_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(artifact, destination)
    except OSError as e:
        raise CacheIOError(f"Failed to copy {artifact} to {destination}: {e}") from e
    return destination
