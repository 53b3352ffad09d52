"""Async wrappers around the ``go`` and ``git`` command-line tools.

Every call runs one subprocess and waits for it. Cancelling the awaiting task
kills the child process before the cancellation propagates.
"""

import asyncio
import json
import logging
import os
from typing import Optional

from .errors import ToolchainError

log = logging.getLogger(__name__)

DEFAULT_GOPROXY = "https://proxy.golang.org,direct"


async def run_command(
    cmd: list[str],
    cwd: Optional[str] = None,
    env: Optional[dict[str, str]] = None,
) -> str:
    """Run *cmd* and return its stdout. Raises ToolchainError on failure."""
    log.debug("exec: %s (cwd=%s)", " ".join(cmd), cwd or ".")
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ToolchainError(cmd, None, str(e)) from e

    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    if proc.returncode != 0:
        raise ToolchainError(cmd, proc.returncode, stderr.decode(errors="replace").strip())
    return stdout.decode(errors="replace")


def proxy_env(base: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Copy of the environment with GOPROXY pointed at the public proxy if unset."""
    env = dict(os.environ if base is None else base)
    if not env.get("GOPROXY"):
        env["GOPROXY"] = DEFAULT_GOPROXY
    return env


async def go_list_modules(module_dir: str) -> list[str]:
    """``go list -m all``: one ``<path> [<version>]`` line per module in the build graph."""
    output = await run_command(["go", "list", "-m", "all"], cwd=module_dir)
    return [line.strip() for line in output.splitlines() if line.strip()]


async def go_list_module_graph(module_dir: str) -> list[dict]:
    """``go list -m -json all``: the build graph as a list of module objects.

    The tool prints a stream of concatenated JSON objects, not an array.
    """
    output = await run_command(["go", "list", "-m", "-json", "all"], cwd=module_dir)
    decoder = json.JSONDecoder()
    modules: list[dict] = []
    idx = 0
    while idx < len(output):
        while idx < len(output) and output[idx].isspace():
            idx += 1
        if idx >= len(output):
            break
        try:
            obj, idx = decoder.raw_decode(output, idx)
        except json.JSONDecodeError as e:
            raise ToolchainError(["go", "list", "-m", "-json", "all"], 0, f"bad JSON: {e}") from e
        if isinstance(obj, dict):
            modules.append(obj)
    return modules


async def go_list_versions(module: str, env: Optional[dict[str, str]] = None) -> str:
    """``go list -m -versions <module>``; raw output, see ``parse_version_listing``."""
    return await run_command(["go", "list", "-m", "-versions", module], env=env)


def parse_version_listing(output: str) -> Optional[list[str]]:
    """Versions from ``<module> v1 v2 ...`` output, possibly wrapped over several lines.

    Returns None when the output does not have the expected shape, an empty
    list when the module is known but has no versions.
    """
    lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
    if not lines:
        return None
    first = lines[0].split()
    versions = first[1:]
    for line in lines[1:]:
        versions.extend(line.split())
    return versions


async def git_ls_remote_tags(url: str) -> list[str]:
    """Tag names from ``git ls-remote --tags``, skipping peeled ``^{}`` entries."""
    output = await run_command(["git", "ls-remote", "--tags", url])
    tags: list[str] = []
    for line in output.splitlines():
        if "^{}" in line:
            continue
        parts = line.split("\t")
        if len(parts) != 2:
            continue
        ref = parts[1].strip()
        if ref.startswith("refs/tags/"):
            tags.append(ref[len("refs/tags/"):])
    return tags
