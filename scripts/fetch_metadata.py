#!/usr/bin/env python
"""
Fetch the RESO $metadata document.

Downloads the raw metadata XML describing the server's resources and
fields and saves it to a file.

Usage:
    python scripts/fetch_metadata.py [--config PATH] [--output FILE]
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from reso_odata.client import ResoClient
from reso_odata.errors import ResoError


PREVIEW_CHARS = 500


def main() -> int:
    parser = argparse.ArgumentParser(description="Fetch the RESO metadata document")
    parser.add_argument('--config', help="Path to .env file")
    parser.add_argument('--output', default='metadata.xml', help="File to write the metadata to")
    args = parser.parse_args()

    try:
        with ResoClient.from_env(args.config) as client:
            print("Fetching metadata from server...")
            metadata = client.fetch_metadata()
    except ResoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"✓ Metadata fetched: {len(metadata)} bytes ({len(metadata) / 1024:.2f} KB)")

    Path(args.output).write_text(metadata)
    print(f"✓ Saved to {args.output}\n")

    print(f"First {PREVIEW_CHARS} characters:")
    print("-" * 60)
    print(metadata[:PREVIEW_CHARS])
    if len(metadata) > PREVIEW_CHARS:
        print("...\n(truncated)")
    print("-" * 60)

    return 0


if __name__ == '__main__':
    sys.exit(main())
