"""Exception hierarchy for node-rebuild.

Configuration and download errors abort a run before any module is touched.
Manifest errors are recovered locally by the dependency walker. Build and
cache errors are fatal for the module they belong to and propagate to the
run's outcome.
"""


class RebuildError(Exception):
    """Base class for all node-rebuild errors."""

    pass


class ConfigError(RebuildError):
    """Raised when the rebuild configuration is invalid.

    Examples: a relative build path, a malformed numeric override, or an
    unknown dependency type.
    """

    pass


class NetworkError(RebuildError):
    """Raised when a remote asset could not be fetched within the retry budget."""

    def __init__(self, url: str, attempts: int):
        self.url = url
        self.attempts = attempts
        super().__init__(f"Failed to fetch {url} after {attempts} attempts")


class BuildDescriptorMissing(RebuildError):
    """Raised when a module has no binding.gyp and therefore cannot be built."""

    def __init__(self, module_path: str):
        self.module_path = module_path
        super().__init__(f"No binding.gyp found in {module_path}")


class ManifestReadError(RebuildError):
    """Raised when a module's package.json is missing or malformed."""

    def __init__(self, manifest_path: str, reason: str):
        self.manifest_path = manifest_path
        self.reason = reason
        super().__init__(f"Could not read {manifest_path}: {reason}")


class BuildFailure(RebuildError):
    """Raised when node-gyp exits non-zero for a module.

    Attributes:
        module_name: Display name of the module that failed
        module_path: Absolute path of the module
        exit_code: Exit code reported by the build worker
        output: Combined stdout/stderr captured from the build worker
    """

    def __init__(self, module_name: str, module_path: str, exit_code: int, output: str):
        self.module_name = module_name
        self.module_path = module_path
        self.exit_code = exit_code
        self.output = output
        super().__init__(f"node-gyp failed to rebuild '{module_path}' (exit code {exit_code})")


class CacheIOError(RebuildError):
    """Raised when a build cache marker or artifact cannot be read or written."""

    pass
