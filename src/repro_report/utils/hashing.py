"""Hashing utilities.

- file_md5: byte-level comparison of rendered artifacts. Note that some formats
  embed metadata, so "same plot" does not always mean "same bytes".
- sha256_hex: fingerprints for cached computations. Deterministic across machines.
"""

import hashlib

_CHUNK = 1 << 16


def file_md5(path: str) -> str:
    h = hashlib.md5()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(_CHUNK), b""):
            h.update(block)
    return h.hexdigest()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
