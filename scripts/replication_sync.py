#!/usr/bin/env python
"""
Replicate a RESO resource page by page.

Walks the replication endpoint with continuation tokens until the server
reports the last page, optionally writing every record as one JSON line.

Usage:
    python scripts/replication_sync.py [--config PATH] [--resource NAME]
        [--filter EXPR] [--top N] [--max-pages N] [--output FILE]
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from reso_odata.client import ResoClient
from reso_odata.config import ConfigManager, validate_config_on_startup
from reso_odata.errors import ErrorKind, ResoError
from reso_odata.logger import create_reso_logger
from reso_odata.query import MAX_REPLICATION_TOP, ReplicationQueryBuilder
from reso_odata.retry import RetryPolicy


def main() -> int:
    parser = argparse.ArgumentParser(description="Replicate a RESO resource")
    parser.add_argument('--config', help="Path to .env file")
    parser.add_argument('--resource', default='Property', help="Resource to replicate")
    parser.add_argument('--filter', help="OData filter expression")
    parser.add_argument('--top', type=int, default=MAX_REPLICATION_TOP, help="Records per page")
    parser.add_argument('--max-pages', type=int, help="Stop after this many pages")
    parser.add_argument('--output', help="Write records as JSON lines to this file")
    args = parser.parse_args()

    try:
        config = ConfigManager(args.config).load_config()
        validate_config_on_startup(config)
        builder = ReplicationQueryBuilder(args.resource).top(args.top)
        if args.filter:
            builder.filter(args.filter)
        query = builder.build()
    except ResoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger = create_reso_logger(
        log_dir=config.logging.log_dir,
        log_level=config.logging.log_level,
        use_json_format=config.logging.use_json
    )
    retry = RetryPolicy.from_config(config.retry)
    output = open(args.output, 'w') if args.output else None

    logger.start_operation(f"replicate_{args.resource}", {'filter': args.filter, 'top': args.top})
    status = "success"
    try:
        with ResoClient(config.client, logger=logger) as client:
            cursor = client.replicate(query)
            while not cursor.is_exhausted:
                if args.max_pages is not None and cursor.pages_fetched >= args.max_pages:
                    print(f"Stopping after {args.max_pages} pages; more records are available")
                    status = "partial"
                    break

                page = retry.call(cursor.fetch_next)
                print(f"Page {cursor.pages_fetched}: {page.record_count} records "
                      f"(total {cursor.records_fetched})")

                if output:
                    for record in page.records:
                        output.write(json.dumps(record, default=str) + "\n")

        print(f"\n✓ Replicated {cursor.records_fetched} {args.resource} records "
              f"in {cursor.pages_fetched} pages")
    except ResoError as e:
        status = "failed"
        logger.log_error(f"Replication of {args.resource} failed", e)
        print(f"Error: {e}", file=sys.stderr)
        if e.kind in (ErrorKind.FORBIDDEN, ErrorKind.NOT_FOUND):
            print("The server may not support replication for this resource or these credentials.",
                  file=sys.stderr)
        return 1
    finally:
        logger.complete_operation(status)
        logger.close()
        if output:
            output.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
