#!/usr/bin/env python3
"""loadhook: cached compiler transforms for build-tool load hooks.

Usage:
    python loadhook.py transform FILE... --compiler MODULE:FUNC [-o DIR]
    python loadhook.py cache-dir
"""

import argparse
import asyncio
import importlib
import logging
import os
import re
import sys
from typing import Optional

from .cachedir import default_cache_dir
from .dispatch import Dispatcher, LoadRegistry, Transform
from .errors import ConfigurationError, LoadhookError
from .options import resolve_options

logger = logging.getLogger("loadhook")


def load_transform(spec: str) -> Transform:
    """Import a transform given as "package.module:function"."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"--compiler should look like MODULE:FUNC, got '{spec}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"cannot import transform module '{module_name}': {e}") from e
    transform = getattr(module, attr, None)
    if transform is None:
        raise ConfigurationError(f"module '{module_name}' has no attribute '{attr}'")
    return transform


def _build_options(args: argparse.Namespace):
    raw = {}
    if args.include:
        raw["include"] = args.include[0] if len(args.include) == 1 else [
            re.compile(p) for p in args.include
        ]
    if args.exclude is not None:
        raw["exclude"] = args.exclude
    cache = {"enable": not args.no_cache}
    if args.cache_dir:
        cache["base"] = args.cache_dir
    raw["cache"] = cache
    if args.compiler_package:
        raw["compiler"] = args.compiler_package
    return resolve_options(raw)


async def _transform_files(args: argparse.Namespace) -> None:
    options = _build_options(args)
    dispatcher = Dispatcher(load_transform(args.compiler), options)
    registry = LoadRegistry()
    await dispatcher.setup(registry)

    # Outputs keep their path relative to the inputs' common directory
    input_root = os.path.commonpath(
        [os.path.dirname(os.path.abspath(p)) for p in args.files]
    )

    for path in args.files:
        identity = os.path.abspath(path)
        result = await registry.load(identity)
        if result is None:
            logger.info("no handler for %s, copied unchanged", path)
            with open(identity, "r", encoding="utf-8") as f:
                contents = f.read()
        else:
            contents = result["contents"]

        if args.out_dir:
            out_path = os.path.join(args.out_dir, os.path.relpath(identity, input_root))
            os.makedirs(os.path.dirname(out_path), exist_ok=True)
            with open(out_path, "w", encoding="utf-8") as f:
                f.write(contents)
            print(f"Transformed {path} → {out_path}")
        else:
            sys.stdout.write(contents)


def main(argv: Optional[list[str]] = None):
    argparser = argparse.ArgumentParser(description="loadhook transform runner")
    argparser.add_argument("-v", "--verbose", action="store_true", help="Log cache activity")
    sub = argparser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("transform", help="Transform files through the cache")
    run.add_argument("files", nargs="+", help="Input files")
    run.add_argument("--compiler", required=True, help="Transform as MODULE:FUNC")
    run.add_argument("--compiler-package",
                     help="Distribution whose version stamps cache entries (default: typia)")
    run.add_argument("-o", "--out-dir", help="Write results here (default: stdout)")
    run.add_argument("--include", action="append", help="Regex of files to transform (repeatable)")
    run.add_argument("--exclude", action="append", help="Regex of files to skip (repeatable)")
    run.add_argument("--no-cache", action="store_true", help="Disable the transform cache")
    run.add_argument("--cache-dir", help="Cache directory (default: <tmp>/loadhook)")

    sub.add_parser("cache-dir", help="Print the default cache directory")

    args = argparser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        stream=sys.stderr)

    if args.command == "cache-dir":
        print(default_cache_dir())
        return

    try:
        asyncio.run(_transform_files(args))
    except (LoadhookError, OSError, UnicodeDecodeError, re.error) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
