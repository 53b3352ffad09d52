"""CLI entry point: python -m dependent_discovery <command> ...

Commands:
  discover          list dependents of a module (workspace or GitHub organization)
  resolve-version   resolve the version a module should be bumped to
  validate          validate a manifest file
  plan              discover, resolve, generate and validate a manifest in one go
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from .config import GitHubConfig
from .discover import select_discovery
from .errors import (
    DiscoveryInputError,
    ManifestLoadError,
    ManifestValidationError,
    ProviderError,
    ToolchainError,
    VersionResolutionError,
)
from .generator import GenerateOptions
from .github_client import GitHubClient
from .manifest import MANIFEST_FILE_NAME, dump_manifest, load_manifest
from .models import (
    DiscoveryRequest,
    DiscoverySource,
    GitHubDiscoveryRequest,
    GitHubVersionRequest,
    RemoteVersionStrategy,
    VersionRequest,
    VersionStrategy,
)
from .pipeline import run_pipeline
from .validate import validate

log = logging.getLogger(__name__)


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--target", required=True, help="Module identifier of the released module")
    p.add_argument(
        "--source",
        choices=[s.value for s in DiscoverySource],
        default=DiscoverySource.WORKSPACE.value,
        help="Discovery substrate (default: workspace)",
    )
    p.add_argument("--workspace", default=".", help="Workspace root for local discovery (default: .)")
    p.add_argument("--concurrency", type=int, default=1, help="Max in-flight probes (default: 1)")


def _add_discovery_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--org", help="GitHub organization (required with --source github)")
    p.add_argument("--target-version", help="Only keep dependents pinned below this version")
    p.add_argument("--max-depth", type=int, default=0, help="Directory depth limit, 0 = unlimited")
    p.add_argument("--include", action="append", default=[], help="Include pattern (repeatable)")
    p.add_argument("--exclude", action="append", default=[], help="Exclude pattern (repeatable)")
    p.add_argument("--max-results", type=int, default=0, help="Result cap, 0 = unlimited")
    p.add_argument("--search-query", default="", help="Raw GitHub search query (org scope is appended)")


def _add_version_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--strategy",
        help="Workspace: local|latest|auto (default auto). GitHub: tags|proxy|git-remote (default tags)",
    )
    p.add_argument("--allow-network", action="store_true", help="Permit registry lookups for workspace resolution")
    p.add_argument("--repo", default="", help="owner/name of the target module's repository")
    p.add_argument("--fallback-to-tags", action="store_true", help="With --strategy proxy, fall back to tags")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dependent_discovery",
        description="Find the repositories that depend on a module and the version to bump them to.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("-o", "--output", help="Write JSON results to file instead of stdout")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("discover", help="List dependents of a module")
    _add_source_args(p)
    _add_discovery_args(p)

    p = sub.add_parser("resolve-version", help="Resolve the target module's version")
    _add_source_args(p)
    _add_version_args(p)

    p = sub.add_parser("validate", help="Validate a manifest file")
    p.add_argument(
        "manifest",
        nargs="?",
        default=MANIFEST_FILE_NAME,
        help=f"Path to the manifest YAML (default: {MANIFEST_FILE_NAME})",
    )

    p = sub.add_parser("plan", help="Discover, resolve, generate and validate a manifest")
    _add_source_args(p)
    _add_discovery_args(p)
    _add_version_args(p)
    p.add_argument("--module-name", help="Manifest module name (default: last identifier segment, without a /vN suffix)")
    p.add_argument("--manifest-out", help="Write the generated manifest YAML to this file")

    return parser


def _discovery_request(args):
    if args.source == DiscoverySource.GITHUB.value:
        if not args.org:
            raise DiscoveryInputError("--org is required with --source github")
        return GitHubDiscoveryRequest(
            organization=args.org,
            target_module=args.target,
            target_version=args.target_version,
            include_patterns=tuple(args.include),
            exclude_patterns=tuple(args.exclude),
            max_results=args.max_results,
            search_query=args.search_query,
        )
    return DiscoveryRequest(
        workspace_dir=str(Path(args.workspace).resolve()),
        target_module=args.target,
        target_version=args.target_version,
        max_depth=args.max_depth,
        include_patterns=tuple(args.include),
        exclude_patterns=tuple(args.exclude),
        max_results=args.max_results,
    )


def _strategy(kind, value, default):
    if not value:
        return default
    try:
        return kind(value)
    except ValueError:
        choices = ", ".join(s.value for s in kind)
        raise DiscoveryInputError(f"unknown strategy {value!r} for this source (choose from {choices})") from None


def _version_request(args):
    if args.source == DiscoverySource.GITHUB.value:
        return GitHubVersionRequest(
            repository=args.repo,
            target_module=args.target,
            strategy=_strategy(RemoteVersionStrategy, args.strategy, RemoteVersionStrategy.TAGS),
            fallback_to_tags=args.fallback_to_tags,
        )
    return VersionRequest(
        workspace_dir=str(Path(args.workspace).resolve()),
        target_module=args.target,
        strategy=_strategy(VersionStrategy, args.strategy, VersionStrategy.AUTO),
        allow_network=args.allow_network,
    )


async def _run_with_engine(args, config) -> dict:
    if args.source == DiscoverySource.GITHUB.value:
        async with GitHubClient(config) as client:
            engine = select_discovery(args.source, client=client, config=config, concurrency=args.concurrency)
            return await _run_command(args, engine)
    engine = select_discovery(args.source, config=config, concurrency=args.concurrency)
    return await _run_command(args, engine)


async def _run_command(args, engine) -> dict:
    match args.command:
        case "discover":
            dependents = await engine.discover_dependents(_discovery_request(args))
            return {
                "target_module": args.target,
                "source": args.source,
                "dependents": [d.model_dump(mode="json", exclude_defaults=True) for d in dependents],
            }
        case "resolve-version":
            resolution = await engine.resolve_version(_version_request(args))
            return {"target_module": args.target, **resolution.model_dump(mode="json")}
        case "plan":
            result = await run_pipeline(
                engine,
                _discovery_request(args),
                _version_request(args),
                module_name=args.module_name,
                repository=args.repo,
                options=GenerateOptions(module_name="", module_path="", repository=args.repo),
            )
            if args.manifest_out:
                dump_manifest(result.manifest, args.manifest_out)
                print(f"Manifest written to {args.manifest_out}", file=sys.stderr)
            return {
                "target_module": args.target,
                "version": result.resolution.model_dump(mode="json"),
                "dependents": [d.model_dump(mode="json", exclude_defaults=True) for d in result.dependents],
                "manifest": result.manifest.model_dump(mode="json", exclude_none=True),
                "timings": {k: round(v, 3) for k, v in result.timings.items()},
            }
    raise ValueError(f"unknown command: {args.command}")


def _validate_file(path: str) -> dict:
    manifest = load_manifest(path)
    validate(manifest)
    return {"manifest": path, "status": "valid", "modules": len(manifest.modules or [])}


def _fail(message: str) -> None:
    print(message, file=sys.stderr)
    log.debug("Failure detail", exc_info=True)
    sys.exit(1)


def main():
    load_dotenv()

    parser = _build_parser()
    args = parser.parse_args()

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    config = None
    if getattr(args, "source", None) == DiscoverySource.GITHUB.value:
        try:
            config = GitHubConfig.from_env()
        except ValueError as e:
            _fail(f"GitHub config error: {e}")

    t0 = time.time()
    try:
        if args.command == "validate":
            output = _validate_file(args.manifest)
        else:
            output = asyncio.run(_run_with_engine(args, config))
    except DiscoveryInputError as e:
        _fail(f"Invalid input: {e}")
    except ManifestLoadError as e:
        _fail(str(e))
    except ManifestValidationError as e:
        _fail(str(e))
    except VersionResolutionError as e:
        _fail("\n".join([f"Version resolution failed: {e}", *(f"  warning: {w}" for w in e.warnings)]))
    except ProviderError as e:
        _fail(f"GitHub API error: {e}")
    except ToolchainError as e:
        _fail(f"Toolchain error: {e}")
    except OSError as e:
        _fail(f"Cannot access files: {e}")
    except Exception as e:
        _fail(f"Unexpected error: {type(e).__name__}: {e}")

    output["execution_time_ms"] = round((time.time() - t0) * 1000, 1)
    json_str = json.dumps(output, indent=2)
    if args.output:
        Path(args.output).write_text(json_str)
        print(f"Results written to {args.output}", file=sys.stderr)
    else:
        print(json_str)


if __name__ == "__main__":
    main()
