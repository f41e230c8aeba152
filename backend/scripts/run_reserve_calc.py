"""Run one reserve calculation and print the headline figures as JSON.

Usage:
    python scripts/run_reserve_calc.py [values.json] [CHANNEL]

values.json holds field names and quantities, e.g. {"ONHAND": 626, "SNB": 1}.
Without a file the built-in sample record is used.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from skuloc_reserve.config import settings
from skuloc_reserve.core.exceptions import ReserveCalcException
from skuloc_reserve.services.reserve_calculation_service import ReserveCalculationService
from skuloc_reserve.utils.events import configure_event_bus
from skuloc_reserve.utils.logging import configure_logging

logger = logging.getLogger("skuloc_reserve.scripts")

SAMPLE_VALUES = {
    "ONHAND": "626",
    "SNB": "1",
    "DOTRSV": "255",
    "RETRSV": "84",
    "DOTOUTB": "255",
    "NEED": "84",
}


def main(argv: list[str]) -> int:
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    configure_event_bus(trace=settings.RESERVE_TRACE_EVENTS)
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)

    values = json.loads(Path(argv[1]).read_text()) if len(argv) > 1 else SAMPLE_VALUES
    channel = argv[2] if len(argv) > 2 else None

    service = ReserveCalculationService()
    try:
        result = service.calculate_from_mapping(values, channel=channel)
    except ReserveCalcException as exc:
        print(json.dumps(exc.to_dict(), indent=2))
        return 1

    summary = service.summarize(result)
    print(json.dumps({label: str(value) for label, value in summary.items()}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
