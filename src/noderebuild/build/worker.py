"""Build worker process.

Runs node-gyp for exactly one module, isolated from the orchestrating
process. The parent starts it as:

    python -m noderebuild.build.worker

with the module directory as working directory, and writes one JSON request
to stdin:

    {"moduleName": "bcrypt", "buildArgs": ["rebuild", ...], "workDir": "/home/u/.node-rebuild-gyp"}

The worker runs ``node-gyp <buildArgs...> --devdir=<workDir>`` with inherited
stdout/stderr and exits with node-gyp's exit code.

Exit codes:
    node-gyp's own exit code on a completed run
    2: malformed request
    127: node-gyp not found

Environment:
    NODE_GYP: node-gyp executable (or node-gyp.js script) to use instead of PATH lookup
"""

import json
import os
import shutil
import sys
from dataclasses import dataclass
from typing import Optional

from ..subprocess_utils import safe_run

EXIT_BAD_REQUEST = 2
EXIT_NODE_GYP_MISSING = 127


@dataclass(frozen=True)
class BuildRequest:
    """One build job handed from the orchestrator to a worker."""

    module_name: str
    build_args: list[str]
    work_dir: str

    def to_json(self) -> str:
        """Serialize to the wire format read by the worker."""
        return json.dumps({"moduleName": self.module_name, "buildArgs": self.build_args, "workDir": self.work_dir})

    @classmethod
    def from_json(cls, text: str) -> "BuildRequest":
        """Parse a request.

        Raises:
            ValueError: If the text is not a well-formed request
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("request must be a JSON object")
        module_name = data.get("moduleName")
        build_args = data.get("buildArgs")
        work_dir = data.get("workDir")
        if not isinstance(module_name, str):
            raise ValueError("moduleName must be a string")
        if not isinstance(build_args, list) or not all(isinstance(a, str) for a in build_args):
            raise ValueError("buildArgs must be a list of strings")
        if not isinstance(work_dir, str) or not work_dir:
            raise ValueError("workDir must be a non-empty string")
        return cls(module_name=module_name, build_args=build_args, work_dir=work_dir)


def find_node_gyp() -> Optional[list[str]]:
    """Command prefix that launches node-gyp, or None if it cannot be found."""
    override = os.environ.get("NODE_GYP")
    if override:
        if override.endswith(".js"):
            return ["node", override]
        return [override]
    executable = shutil.which("node-gyp")
    return [executable] if executable else None


def main() -> int:
    """Read one request from stdin and run node-gyp for it."""
    try:
        request = BuildRequest.from_json(sys.stdin.read())
    except ValueError as e:
        print(f"node-rebuild worker: bad request: {e}", file=sys.stderr)
        return EXIT_BAD_REQUEST

    node_gyp = find_node_gyp()
    if node_gyp is None:
        print("node-rebuild worker: node-gyp not found (set NODE_GYP or add it to PATH)", file=sys.stderr)
        return EXIT_NODE_GYP_MISSING

    cmd = [*node_gyp, *request.build_args, f"--devdir={request.work_dir}"]
    try:
        result = safe_run(cmd)
    except FileNotFoundError:
        print(f"node-rebuild worker: cannot execute {node_gyp[0]}", file=sys.stderr)
        return EXIT_NODE_GYP_MISSING
    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
