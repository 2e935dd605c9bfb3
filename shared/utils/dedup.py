"""
Content-derived deduplication ids for FIFO queue messages
"""

import hashlib

# ASCII unit separator keeps ("ab", "c") and ("a", "bc") distinct
_FIELD_SEPARATOR = '\x1f'


def content_dedup_id(*fields: str) -> str:
    """
    Hash message fields into a deduplication id

    Args:
        *fields: Field values in a fixed order

    Returns:
        64-character hex SHA-256 digest (within the 128-char FIFO dedup id limit)
    """
    payload = _FIELD_SEPARATOR.join('' if f is None else str(f) for f in fields)
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()
