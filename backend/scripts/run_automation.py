"""
Trigger one automation run by hand and print the RunResult as JSON.

Usage:
    cd backend
    python -m scripts.run_automation --dry-run
"""
import argparse
import asyncio
import os
import sys

backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from serialforge.core.config import load_settings
from serialforge.infrastructure.observability import configure_logging
from serialforge.schemas import RunOptions
from serialforge.services.orchestrator import Orchestrator


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the serial lifecycle automation once.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Analyze and decide only; nothing is generated or stored.",
    )
    parser.add_argument(
        "--compression",
        choices=["none", "light", "medium", "heavy"],
        default="none",
        help="Context compression level requested from the tracker.",
    )
    parser.add_argument(
        "--storage-backend",
        choices=["memory", "filesystem", "redis"],
        default=None,
        help="Override STORAGE_BACKEND.",
    )
    parser.add_argument("--storage-root", default=None, help="Override STORAGE_ROOT.")
    parser.add_argument("--generator-url", default=None, help="Override GENERATOR_URL.")
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.storage_backend:
        overrides["STORAGE_BACKEND"] = args.storage_backend
    if args.storage_root:
        overrides["STORAGE_ROOT"] = args.storage_root
    if args.generator_url:
        overrides["GENERATOR_URL"] = args.generator_url
    return overrides


async def main(argv=None) -> int:
    args = _parse_args(argv)
    settings = load_settings(**_overrides(args))
    configure_logging(settings)
    orchestrator = Orchestrator(settings)
    result = await orchestrator.run(
        RunOptions(dry_run=args.dry_run, context_compression=args.compression)
    )
    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
