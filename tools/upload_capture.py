#!/usr/bin/env python3
"""
Upload a violation capture to the image bucket

Attaches a randomly chosen violation type, a capture time within the last
30 days and an intersection to the object's metadata, which is what the
detector reads when the bucket notification fires.

Usage:
    python tools/upload_capture.py path/to/capture.jpg
"""

import argparse
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Sequence

from loguru import logger

from shared.config import DEFAULT_FINES, load_config
from shared.errors import CollaboratorError
from shared.utils.log_setup import configure_logging

CAPTURE_EXTENSION = '.jpg'

LOCATIONS = [
    "Main St and 116th AVE intersection, Bellevue",
    "2nd St and 117th AVE intersection, Seattle",
    "4th St and 108th AVE intersection, Renton",
]

RECENT_WINDOW = timedelta(days=30)


def random_capture_metadata(
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
    violation_types: Sequence[str] = tuple(DEFAULT_FINES),
) -> Dict[str, str]:
    """
    Pick violation metadata for a capture

    Returns:
        {'violation', 'time' (ISO 8601 UTC within the last 30 days), 'location'}
    """
    rng = rng or random.Random()
    now = now or datetime.now(timezone.utc)
    captured_at = now - RECENT_WINDOW * rng.random()
    return {
        'violation': rng.choice(list(violation_types)),
        'time': captured_at.isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
        'location': rng.choice(LOCATIONS),
    }


def is_capture_file(path: str) -> bool:
    return path.endswith(CAPTURE_EXTENSION)


def upload_capture(store, bucket: str, file_path: str, metadata: Dict[str, str]) -> str:
    """
    Upload one capture

    Args:
        store: MinioObjectStore (anything with put_capture)
        bucket: Target bucket
        file_path: Local JPEG path
        metadata: Violation metadata for the object

    Returns:
        Object key (the file name)
    """
    key = Path(file_path).name
    store.put_capture(bucket, key, file_path, metadata)
    return key


def main(argv: Optional[Sequence[str]] = None, store=None) -> int:
    parser = argparse.ArgumentParser(
        description="Upload a violation capture with randomized violation metadata"
    )
    parser.add_argument(
        "file_path",
        help="Path to a .jpg capture"
    )
    parser.add_argument(
        "--bucket",
        default=None,
        help="Target bucket (default: object_store.bucket from the config)"
    )
    args = parser.parse_args(argv)

    config = load_config()
    configure_logging(config.log_level, stage='upload')

    if not is_capture_file(args.file_path):
        logger.error("Only JPG files are supported.")
        return 1

    if not Path(args.file_path).is_file():
        logger.error(f"File not found: {args.file_path}")
        return 1

    if store is None:
        from shared.factory import build_object_store
        store = build_object_store(config)

    bucket = args.bucket or config.object_store.bucket
    metadata = random_capture_metadata(violation_types=list(config.notifier.fines))

    try:
        key = upload_capture(store, bucket, args.file_path, metadata)
    except CollaboratorError as e:
        logger.error(f"Error: {e}")
        return 1

    logger.success(
        f"File uploaded successfully: {bucket}/{key} "
        f"({metadata['violation']} at {metadata['location']}, {metadata['time']})"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
