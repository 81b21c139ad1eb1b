# LocalSync Hashing Utilities
# Content fingerprints for change detection and optimistic concurrency

import hashlib

FINGERPRINT_ALGORITHM = "sha256"


def content_hash(content: str | bytes, *, algorithm: str = FINGERPRINT_ALGORITHM) -> str:
    """
    Calculate the fingerprint of content.

    Args:
        content: String or bytes content. Strings are encoded as UTF-8.
        algorithm: Hash algorithm (default sha256).

    Returns:
        Hex digest of hash.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")

    hasher = hashlib.new(algorithm)
    hasher.update(content)
    return hasher.hexdigest()


# Fingerprint carried by delete operations
EMPTY_HASH = content_hash("")
