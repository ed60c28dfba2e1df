"""Command-line entry point: one commission per newline-delimited JSON record"""

import argparse
import json
import logging
import os
import sys
import time
from typing import Any, Dict, Sequence, TextIO

from pydantic import ValidationError

from commission_gateway.bootstrap import build_calculator
from commission_gateway.config import Settings
from commission_gateway.domain.commission import CommissionCalculator
from commission_gateway.domain.exceptions import (
    InvalidExchangeRateError,
    TransactionValidationError,
    UpstreamError,
)
from commission_gateway.domain.models import Transaction
from commission_gateway.infrastructure.observability.logging import log_commission, setup_logging
from commission_gateway.infrastructure.observability.metrics import record_commission

logger = logging.getLogger("commission_gateway.cli")

EXIT_USAGE = 1
EXIT_CONFIG = 3


class InvalidRecordError(ValueError):
    """Input line is not a JSON object with usable bin, amount and currency"""

    pass


def parse_record(line: str) -> Dict[str, Any]:
    """
    Decode one input line into Transaction keyword arguments.

    bin and currency must be strings; amount must be a number or a numeric
    string (booleans are rejected). Field formats are left to Transaction.

    Raises:
        InvalidRecordError: On invalid JSON or missing/mistyped fields
    """
    try:
        data = json.loads(line)
    except ValueError as e:
        raise InvalidRecordError("Invalid JSON") from e

    if not isinstance(data, dict) or not all(field in data for field in ("bin", "amount", "currency")):
        raise InvalidRecordError("Invalid/missing fields")

    amount = data["amount"]
    if isinstance(amount, bool) or not isinstance(amount, (int, float, str)):
        raise InvalidRecordError("Invalid/missing fields")
    try:
        amount = float(amount)
    except (ValueError, OverflowError) as e:
        raise InvalidRecordError("Invalid/missing fields") from e

    if not isinstance(data["bin"], str) or not isinstance(data["currency"], str):
        raise InvalidRecordError("Invalid/missing fields")

    return {"bin": data["bin"], "amount": amount, "currency": data["currency"]}


def process_stream(lines: TextIO, calculator: CommissionCalculator, out: TextIO) -> int:
    """
    Print a commission for every valid line; bad lines are logged and skipped.

    Returns:
        Number of commissions written
    """
    written = 0
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue

        try:
            transaction = Transaction(**parse_record(line))
        except InvalidRecordError as e:
            logger.warning(f"{e} line {line_number}", extra={"line": line_number})
            continue
        except TransactionValidationError as e:
            logger.error(f"[Validation Error] Line {line_number}: {e}", extra={"line": line_number})
            continue

        start_time = time.time()
        try:
            result = calculator.evaluate(transaction)
        except UpstreamError as e:
            logger.error(
                f"[Processing Error] Line {line_number}: {e}",
                extra={"line": line_number, "error_kind": e.kind.value, "status_code": e.status_code},
            )
            continue
        except InvalidExchangeRateError as e:
            logger.error(f"[Processing Error] Line {line_number}: {e}", extra={"line": line_number})
            continue
        except Exception as e:
            logger.error(
                f"[Processing Error] Line {line_number}: Unexpected error: {e}",
                extra={"line": line_number},
                exc_info=True,
            )
            continue

        record_commission(result.is_eu)
        log_commission(result, source="cli", duration_ms=(time.time() - start_time) * 1000)
        print(f"{result.commission:.2f}", file=out)
        written += 1

    return written


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="commission-gateway",
        description="Calculate card transaction commissions from a newline-delimited JSON file.",
    )
    parser.add_argument("input_file", nargs="?", help="path to the input file, one JSON record per line")
    args = parser.parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as e:
        print(f"[CRITICAL] Environment configuration load failed: {e}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(settings.log_level, service=settings.service_name)

    if not settings.exchange_rates_api_key:
        logger.critical("Environment configuration load failed: EXCHANGE_RATES_API_KEY is empty")
        return EXIT_CONFIG

    if args.input_file is None:
        parser.print_usage(sys.stderr)
        logger.critical("Usage: commission-gateway <input_file>")
        return EXIT_USAGE

    input_file = args.input_file
    if not os.path.isfile(input_file) or not os.access(input_file, os.R_OK):
        logger.critical(f"Input file not found or not readable: {input_file}")
        return EXIT_USAGE

    calculator = build_calculator(settings)

    try:
        handle = open(input_file, encoding="utf-8")
    except OSError as e:
        logger.critical(f"Could not read input file: {input_file}: {e}")
        return EXIT_USAGE

    with handle:
        process_stream(handle, calculator, sys.stdout)

    logger.info("Processing finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
