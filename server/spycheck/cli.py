from __future__ import annotations

import argparse
import os


def add_runtime_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-i",
        "--index-path",
        help="Path to index.json containing server names and IDs (overrides SPYCHECK_EXPORT_PATH).",
    )
    parser.add_argument(
        "-m",
        "--mode",
        choices=["list", "lookup"],
        help="Download the full spy.pet server list, or look up each server individually.",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        help="Max number of concurrent lookup requests. Setting this higher than 1 may get you ratelimited.",
    )
    parser.add_argument(
        "-f",
        "--format",
        dest="output_format",
        choices=["plain", "json"],
        help="Output format.",
    )
    parser.add_argument("-o", "--output", help="Output to file instead of stdout.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Abort on malformed export records instead of skipping them.",
    )


def apply_runtime_overrides(args: argparse.Namespace) -> None:
    if getattr(args, "index_path", None):
        os.environ["SPYCHECK_EXPORT_PATH"] = args.index_path
    if getattr(args, "mode", None):
        os.environ["SPYCHECK_MODE"] = args.mode
    if getattr(args, "concurrency", None) is not None:
        os.environ["SPYCHECK_CONCURRENCY"] = str(args.concurrency)
    if getattr(args, "output_format", None):
        os.environ["SPYCHECK_OUTPUT_FORMAT"] = args.output_format
    if getattr(args, "output", None):
        os.environ["SPYCHECK_OUTPUT"] = args.output
    if getattr(args, "strict", False):
        os.environ["SPYCHECK_STRICT_EXPORT"] = "1"
