from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from server.spycheck.cli import add_runtime_args, apply_runtime_overrides
from server.spycheck.config import Settings
from server.spycheck.errors import CheckError
from server.spycheck.pipeline import run_check
from server.spycheck.report import render, write_report

log = logging.getLogger("spycheck")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check if any of the servers you are in is present in spy.pet's database.")
    add_runtime_args(parser)
    args = parser.parse_args(argv)

    load_dotenv()
    apply_runtime_overrides(args)
    try:
        settings = Settings.from_env()
    except ValueError as e:
        logging.basicConfig(level=logging.INFO)
        log.error("Invalid configuration: %s", e)
        return 2

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    try:
        outcome = run_check(settings)
        write_report(
            render(outcome, output_format=settings.output_format),
            settings.output_path,
            export_path=settings.export_path,
        )
    except CheckError as e:
        log.error("%s", e)
        return e.exit_code
    except ValueError as e:
        log.error("%s", e)
        return 2
    except OSError as e:
        log.error("Couldn't write report: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
