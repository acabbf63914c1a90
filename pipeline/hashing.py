"""
hashing.py - Content hashes used for production filenames and bundle ids.
"""

import hashlib


def content_hash(content, length=None):
    """
    Return the SHA-1 hex digest of ``content``.

    ``content`` may be ``str`` (hashed as UTF-8) or ``bytes``. Identical
    bytes always give the same digest, so hashed filenames stay stable
    across builds. Pass ``length`` to truncate the digest.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    digest = hashlib.sha1(content).hexdigest()
    return digest[:length] if length else digest


def file_hash(path, length=None, chunk_size=1 << 16):
    """SHA-1 of a file on disk, read in chunks."""
    h = hashlib.sha1()
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            h.update(chunk)
    digest = h.hexdigest()
    return digest[:length] if length else digest
