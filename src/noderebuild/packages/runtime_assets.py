"""Target runtime assets: node import library and header tree.

Both assets live under a version-named directory inside the build root:

    <build>/libnode-v<version>/
        libnode<major>.lib          import library
        node-v<version>/include/    extracted header tree

Each asset is downloaded only when missing on disk. The existence check is
the only guard, so two runs against the same build root at the same time
can race on the download.
"""

import logging
import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path

from ..config import RebuildConfig
from ..output import TimedLogger
from .fetcher import ResponseKind, fetch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeAssets:
    """Resolved locations of the target runtime's build inputs.

    Attributes:
        node_dir: Header directory passed to node-gyp as --nodedir
        node_lib_file: Import library passed to node-gyp as --node_lib_file
    """

    node_dir: Path
    node_lib_file: Path


def runtime_dir(build_path: Path, node_version: str) -> Path:
    """Version-named directory holding the runtime assets."""
    return build_path / f"libnode-v{node_version}"


def library_file_path(config: RebuildConfig) -> Path:
    """Expected location of the downloaded import library."""
    return runtime_dir(config.build_path, config.node_version) / f"libnode{config.node_major_version}.lib"


def headers_dir_path(config: RebuildConfig) -> Path:
    """Expected location of the extracted header tree."""
    return runtime_dir(config.build_path, config.node_version) / f"node-v{config.node_version}"


def library_url(config: RebuildConfig) -> str:
    """Download URL for the import library."""
    return f"{config.library_url}/v{config.node_version}/libnode/libnode{config.node_major_version}.lib"


def headers_url(config: RebuildConfig) -> str:
    """Download URL for the header tarball."""
    return f"{config.headers_url}/v{config.node_version}/node-v{config.node_version}-headers.tar.gz"


def ensure_node_library(config: RebuildConfig) -> Path:
    """Make sure the import library exists, downloading it if needed.

    Returns:
        Path to the import library (the configured override if one was given)

    Raises:
        NetworkError: If the download exhausted its retries
    """
    if config.node_lib_file is not None:
        logger.debug("Using configured node library %s", config.node_lib_file)
        return config.node_lib_file

    lib_path = library_file_path(config)
    if not lib_path.exists():
        with TimedLogger(f"Downloading node library v{config.node_version}"):
            payload = fetch(library_url(config), ResponseKind.BUFFER)
            lib_path.parent.mkdir(parents=True, exist_ok=True)
            lib_path.write_bytes(payload)  # type: ignore[arg-type]
    return lib_path


def ensure_node_headers(config: RebuildConfig) -> Path:
    """Make sure the header tree exists, downloading and extracting it if needed.

    The tarball is written next to the header tree, extracted into a
    staging directory that is renamed into place, then deleted.

    Returns:
        Path to the header directory (the configured override if one was given)

    Raises:
        NetworkError: If the download exhausted its retries
        tarfile.TarError: If the archive is corrupt (no header tree is left behind)
    """
    if config.node_dir is not None:
        logger.debug("Using configured node headers %s", config.node_dir)
        return config.node_dir

    headers_dir = headers_dir_path(config)
    if not headers_dir.exists():
        target_dir = headers_dir.parent
        archive_path = target_dir / f"node-v{config.node_version}-headers.tar.gz"
        # The header tree only appears once fully extracted
        staging_dir = target_dir / f".node-v{config.node_version}.extracting"
        with TimedLogger(f"Downloading node headers v{config.node_version}"):
            payload = fetch(headers_url(config), ResponseKind.BUFFER)
            target_dir.mkdir(parents=True, exist_ok=True)
            archive_path.write_bytes(payload)  # type: ignore[arg-type]
            shutil.rmtree(staging_dir, ignore_errors=True)
            try:
                with tarfile.open(archive_path, "r:gz") as tar:
                    tar.extractall(staging_dir, filter="data")
                (staging_dir / headers_dir.name).rename(headers_dir)
            finally:
                archive_path.unlink(missing_ok=True)
                shutil.rmtree(staging_dir, ignore_errors=True)
    return headers_dir


def ensure_runtime_assets(config: RebuildConfig) -> RuntimeAssets:
    """Acquire the import library, then the headers."""
    lib_file = ensure_node_library(config)
    node_dir = ensure_node_headers(config)
    return RuntimeAssets(node_dir=node_dir, node_lib_file=lib_file)
