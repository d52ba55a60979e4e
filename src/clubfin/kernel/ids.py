"""
Document ID generation

IDs are a short type prefix plus a UUIDv7-like value, e.g.
"txn_01908e9a-3b87-7000-8000-123456789abc". The embedded millisecond
timestamp keeps IDs of one collection sortable by creation time.
"""

import secrets
import time

TRANSACTION_PREFIX = "txn"
MAINTENANCE_PREFIX = "majormaint"
CAPEX_PREFIX = "capex"


def generate_id(prefix: str) -> str:
    """
    Generate a prefixed, time-ordered identifier

    First 48 bits of the UUID part are the Unix timestamp in milliseconds,
    the rest is random with version 7 and RFC 4122 variant bits set.

    Args:
        prefix: Collection prefix (see *_PREFIX constants)

    Returns:
        Identifier such as "capex_01908e9a-3b87-7000-8000-123456789abc"
    """
    timestamp_48 = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    rand_12 = secrets.randbits(12)
    rand_62 = secrets.randbits(62)

    time_high = (timestamp_48 >> 16) & 0xFFFFFFFF
    time_low = timestamp_48 & 0xFFFF
    version_and_rand = 0x7000 | rand_12
    variant_and_rand = 0x8000 | ((rand_62 >> 48) & 0x3FFF)
    node = rand_62 & 0xFFFFFFFFFFFF

    return (
        f"{prefix}_{time_high:08x}-{time_low:04x}-{version_and_rand:04x}-"
        f"{variant_and_rand:04x}-{node:012x}"
    )
