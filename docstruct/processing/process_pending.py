"""Process every PENDING document in one batch."""

from __future__ import annotations

import argparse
import logging
from concurrent.futures import wait
from typing import List, Optional

from docstruct.config import settings
from docstruct.storage import DocumentStore, create_engine_from_settings, create_session_factory, init_db

from .orchestrator import DocumentProcessor

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.pending_batch_size,
        help="Maximum number of pending documents to process (default: %(default)s)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=settings.log_level)

    engine = create_engine_from_settings()
    init_db(engine)
    store = DocumentStore(create_session_factory(engine))
    processor = DocumentProcessor(store)
    try:
        futures = processor.process_pending(args.limit)
        if not futures:
            logger.info("No pending documents found.")
            return 0
        wait(futures)
    finally:
        processor.shutdown()

    failed = sum(1 for future in futures if future.exception() is not None)
    logger.info("Processed %s documents, %s failed.", len(futures), failed)
    logger.info("Status counts: %s", {s.value: n for s, n in store.processing_statistics().status_counts.items()})
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
