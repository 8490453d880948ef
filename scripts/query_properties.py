#!/usr/bin/env python
"""
Query property listings from a RESO server.

Runs a filtered, ordered property search, prints the matching records and
the total count, and optionally looks one listing up by key.

Usage:
    python scripts/query_properties.py [--config PATH] [--city CITY]
        [--min-price N] [--top N] [--order-by FIELD] [--desc] [--key KEY]
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from reso_odata.client import ResoClient
from reso_odata.config import ConfigManager, validate_config_on_startup
from reso_odata.errors import ResoError
from reso_odata.helpers import build_query_by_key, count_records, extract_records, format_records
from reso_odata.logger import create_reso_logger
from reso_odata.query import QueryBuilder
from reso_odata.retry import RetryPolicy


PROPERTY_FIELDS = [
    'ListingKey', 'StandardStatus', 'ListPrice', 'City', 'StateOrProvince',
    'PostalCode', 'BedroomsTotal', 'BathroomsTotalInteger', 'LivingArea',
    'YearBuilt', 'ModificationTimestamp'
]


def escape_literal(value: str) -> str:
    """Quote a string literal for an OData filter."""
    return "'" + value.replace("'", "''") + "'"


def build_filter(args: argparse.Namespace) -> str:
    clauses = []
    if args.city:
        clauses.append(f"City eq {escape_literal(args.city)}")
    if args.status:
        clauses.append(f"StandardStatus eq {escape_literal(args.status)}")
    if args.min_price is not None:
        clauses.append(f"ListPrice ge {args.min_price}")
    return ' and '.join(clauses)


def main() -> int:
    parser = argparse.ArgumentParser(description="Search RESO property listings")
    parser.add_argument('--config', help="Path to .env file")
    parser.add_argument('--city', help="City to search")
    parser.add_argument('--status', default='Active', help="StandardStatus to match")
    parser.add_argument('--min-price', type=int, help="Minimum list price")
    parser.add_argument('--top', type=int, default=10, help="Number of records to return")
    parser.add_argument('--order-by', default='ListPrice', help="Field to order by")
    parser.add_argument('--desc', action='store_true', help="Sort descending")
    parser.add_argument('--key', help="Also look up this ListingKey")
    args = parser.parse_args()

    try:
        config = ConfigManager(args.config).load_config()
        report = validate_config_on_startup(config)
    except ResoError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    for warning in report['warnings']:
        print(f"Warning: {warning}", file=sys.stderr)

    logger = create_reso_logger(
        log_dir=config.logging.log_dir,
        log_level=config.logging.log_level,
        use_json_format=config.logging.use_json
    )
    retry = RetryPolicy.from_config(config.retry)
    filter_expr = build_filter(args)

    try:
        with ResoClient(config.client, logger=logger) as client:
            builder = (QueryBuilder("Property")
                       .select(PROPERTY_FIELDS)
                       .order_by(args.order_by, 'desc' if args.desc else 'asc')
                       .top(args.top)
                       .with_count())
            if filter_expr:
                builder.filter(filter_expr)
            query = builder.build()

            print(f"GET {client.compile(query).url}\n")
            response = retry.call(client.execute, query)
            print(format_records(extract_records(response)))

            if '@odata.count' in response:
                print(f"Total matching: {response['@odata.count']}")
            else:
                total = retry.call(count_records, client, "Property", filter_expr or None)
                print(f"Total matching: {total}")

            if args.key:
                record = retry.call(client.execute_by_key, build_query_by_key("Property", args.key, PROPERTY_FIELDS))
                print(f"\nListing {args.key}:")
                print(format_records([record]))
    except ResoError as e:
        logger.log_error("Property query failed", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        logger.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
