"""Mønlur command-line interface with subcommands.

Usage:
    monlur-cli obfuscate <file.lua> [-p Medium] [-o out.lua] [--engine builtin|external]
    monlur-cli remote <file.lua> [--url http://localhost:3000] [--api-key KEY] [-p Medium]
    monlur-cli sweep [--retention 600]
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

import httpx

from monlur.config import settings
from monlur.engines import ENGINE_NAMES, create_engine
from monlur.logging_config import configure_logging
from monlur.models.preset import Preset
from monlur.pipeline import ObfuscationPipeline
from monlur.workspace import WorkspaceManager

_PRESET_CHOICES = [p.value for p in Preset]


def _read_source(path_str: str) -> str:
    path = Path(path_str)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        sys.exit(1)
    return path.read_text(encoding="utf-8")


def _print_stats(processing_ms: int, original: int, obfuscated: int) -> None:
    print(f"  Processing time: {processing_ms}ms")
    print(f"  Original size:   {original} bytes")
    print(f"  Obfuscated size: {obfuscated} bytes")


# --- obfuscate subcommand ---


async def cmd_obfuscate(args: argparse.Namespace) -> None:
    """Obfuscate a file locally through the pipeline."""
    source = _read_source(args.input)

    engine_settings = settings.model_copy(update={"engine": args.engine or settings.engine})
    workspaces = WorkspaceManager(
        engine_settings.temp_dir,
        retention_seconds=engine_settings.retention_seconds,
    )
    engine = create_engine(engine_settings, workspaces)
    pipeline = ObfuscationPipeline(workspaces, engine, max_concurrent=1)

    job = await pipeline.run(source, args.preset)
    if job.error is not None:
        print(f"Error ({job.error.kind}): {job.error.message}", file=sys.stderr)
        sys.exit(1)

    result = job.result
    if args.output:
        Path(args.output).write_text(result.code, encoding="utf-8")
        print(f"Obfuscated {args.input} -> {args.output} ({engine.name}, {job.preset.value})")
        _print_stats(result.processing_time_ms, result.original_size, result.obfuscated_size)
    else:
        sys.stdout.write(result.code)


# --- remote subcommand ---


def cmd_remote(args: argparse.Namespace) -> None:
    """Send a file to a running service, checking /health first."""
    source = _read_source(args.input)
    headers = {"x-api-key": args.api_key} if args.api_key else {}

    with httpx.Client(base_url=args.url, headers=headers, timeout=args.timeout) as client:
        try:
            health = client.get("/health")
            health.raise_for_status()
            print(f"Health check passed: {health.json()}")

            response = client.post("/obfuscate", json={"code": source, "preset": args.preset})
        except httpx.HTTPStatusError as exc:
            print(f"Error: {exc.response.status_code} {exc.response.text}", file=sys.stderr)
            sys.exit(1)
        except httpx.HTTPError as exc:
            print(f"Error: no response from {args.url}: {exc}", file=sys.stderr)
            sys.exit(1)
        except ValueError:
            print(f"Error: health check returned non-JSON: {health.text[:200]}", file=sys.stderr)
            sys.exit(1)

    try:
        data = response.json()
    except ValueError:
        print(f"Error: {response.status_code} non-JSON response: {response.text[:200]}", file=sys.stderr)
        sys.exit(1)
    if response.status_code != 200 or not data.get("success"):
        print(f"Obfuscation failed ({response.status_code}): {data.get('error')}", file=sys.stderr)
        sys.exit(1)

    print("Obfuscation successful")
    _print_stats(data["processingTime"], data["originalSize"], data["obfuscatedSize"])
    if args.output:
        Path(args.output).write_text(data["code"], encoding="utf-8")
        print(f"Saved: {args.output}")
    else:
        print(data["code"][:200] + "...")


# --- sweep subcommand ---


def cmd_sweep(args: argparse.Namespace) -> None:
    """Remove stale workspace artifacts once."""
    workspaces = WorkspaceManager(settings.temp_dir, retention_seconds=args.retention)
    removed = workspaces.sweep()
    print(f"Removed {removed} stale artifact(s) from {workspaces.root}")


# --- Main CLI ---


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="monlur-cli",
        description="Mønlur - Lua obfuscator CLI",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- obfuscate ---
    p_obf = subparsers.add_parser("obfuscate", help="Obfuscate a Lua file locally")
    p_obf.add_argument("input", type=str, help="Input Lua file")
    p_obf.add_argument("-p", "--preset", choices=_PRESET_CHOICES, default=Preset.default().value, help="Strength preset (default: Medium)")
    p_obf.add_argument("-o", "--output", type=str, help="Output file (default: stdout)")
    p_obf.add_argument("--engine", choices=ENGINE_NAMES, help="Transform engine (default: MONLUR_ENGINE)")

    # --- remote ---
    p_remote = subparsers.add_parser("remote", help="Obfuscate through a running service")
    p_remote.add_argument("input", type=str, help="Input Lua file")
    p_remote.add_argument("--url", default=os.environ.get("API_URL", "http://localhost:3000"), help="Service URL (default: API_URL or http://localhost:3000)")
    p_remote.add_argument("--api-key", default=os.environ.get("API_KEY"), help="API key (default: API_KEY)")
    p_remote.add_argument("-p", "--preset", default=Preset.default().value, help="Strength preset")
    p_remote.add_argument("-o", "--output", type=str, help="Save obfuscated code here")
    p_remote.add_argument("--timeout", type=float, default=330.0, help="Request timeout in seconds")

    # --- sweep ---
    p_sweep = subparsers.add_parser("sweep", help="Remove stale workspace artifacts")
    p_sweep.add_argument("--retention", type=float, default=settings.retention_seconds, help="Maximum artifact age in seconds")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # stdout carries the obfuscated code
    configure_logging("DEBUG" if args.verbose else "WARNING", stream=sys.stderr)

    # Dispatch
    if args.command == "obfuscate":
        asyncio.run(cmd_obfuscate(args))
    elif args.command == "remote":
        cmd_remote(args)
    elif args.command == "sweep":
        cmd_sweep(args)


if __name__ == "__main__":
    main()
