"""
ID generation utilities for the mentor core.

IDs are short, prefixed and collision-free: ``thr-a1b2c3d4``.
"""

import hashlib
from uuid import uuid4


def generate_entity_id(prefix: str) -> str:
    """
    Generate a unique ID for any entity.

    Args:
        prefix: Entity type prefix (e.g., "thr", "doc", "chk")

    Returns:
        ID like "thr-a1b2c3d4"

    Examples:
        >>> id = generate_entity_id("thr")
        >>> id.startswith("thr-")
        True
        >>> len(id)
        12
    """
    unique_bytes = uuid4().bytes
    hash_digest = hashlib.sha256(unique_bytes).hexdigest()[:8]
    return f"{prefix}-{hash_digest}"


# Common entity prefixes
PREFIX_TENANT = "tnt"
PREFIX_COURSE = "crs"
PREFIX_LESSON = "lsn"
PREFIX_MENTOR_LESSON = "aml"
PREFIX_ENROLLMENT = "enr"
PREFIX_THREAD = "thr"
PREFIX_DOCUMENT = "doc"
PREFIX_DOCUMENT_LINK = "dlk"
PREFIX_CHUNK = "chk"
PREFIX_JOB = "job"
