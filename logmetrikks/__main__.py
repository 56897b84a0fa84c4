"""One-shot ingestion: `python -m logmetrikks` ingests the configured log file once and exits."""
from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv

from logmetrikks.exceptions import BatchWriteError, SetupError

logger = logging.getLogger("logmetrikks")


def main() -> int:
    load_dotenv()

    from logmetrikks.server.plugins import logging_config, settings, store
    from logmetrikks.services.ingestion import IngestionService

    logging_config.configure()

    try:
        store.setup(reset=settings.database.drop_on_startup)
        summary = IngestionService.from_settings(store, settings).run_once()
    except SetupError as e:
        logger.error("Ingestion could not start: %s", e)
        return 1
    except BatchWriteError as e:
        logger.error("Ingestion aborted: %s", e)
        return 2
    finally:
        store.dispose()

    print(f"Time: {summary.elapsed_seconds} s")
    print(f"New high_water_mark: {summary.high_water_mark}")
    print(f"{summary.lines_processed} lines processed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
