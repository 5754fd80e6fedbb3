import argparse
import csv
import io
import logging
import os
import sys
from typing import List, Optional

from csv_io import write_accounts
from engine import PaymentsEngine
from models import DisputePolicy, TransactionParseError

LOG_LEVEL_ENV = "PAYMENTS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Reduce a CSV of client transactions to account balances written to stdout.",
    )
    parser.add_argument("input", help="path to the transactions CSV")
    parser.add_argument(
        "--strict-rows",
        action="store_true",
        help="abort on the first malformed row instead of skipping it",
    )
    parser.add_argument(
        "--dispute-policy",
        choices=[policy.value for policy in DisputePolicy],
        default=DisputePolicy.PERMISSIVE.value,
        help="strict requires resolve/chargeback to follow an open dispute",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"logging level (default: ${LOG_LEVEL_ENV} or {DEFAULT_LOG_LEVEL})",
    )
    return parser


def configure_logging(level: Optional[str]) -> None:
    level = (level or os.getenv(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    engine = PaymentsEngine(dispute_policy=DisputePolicy(args.dispute_policy))
    try:
        accounts = engine.process_file(args.input, skip_malformed=not args.strict_rows)
    except OSError as e:
        print(f"Error: could not read {args.input}: {e.strerror or e}", file=sys.stderr)
        return 1
    except TransactionParseError as e:
        print(f"Error: malformed row in {args.input}: {e}", file=sys.stderr)
        return 1
    except (UnicodeDecodeError, csv.Error) as e:
        print(f"Error: could not parse {args.input} as UTF-8 CSV: {e}", file=sys.stderr)
        return 1

    # Nothing reaches stdout unless the whole input was processed.
    output = io.StringIO()
    write_accounts(accounts.values(), output)
    sys.stdout.write(output.getvalue())
    return 0


if __name__ == "__main__":
    sys.exit(main())
