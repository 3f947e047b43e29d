"""A versioned key/value map with a hash for every state.

Each distinct state of the map has its own root hash. Earlier states stay
readable through their root hash for as long as their nodes are retained.
"""

from __future__ import annotations

import base64
import binascii
from typing import Callable, Optional

from meshcore.hashing import HASH_LENGTH, hasher, murmur3_64
from meshcore.smt import DEFAULT_LEAF, SparseMerkleTree
from meshcore.trie_cache import Duration

__all__ = ["Ledger", "make", "coerce_key_to_hash_len", "coerce_to_hash_len"]


def coerce_key_to_hash_len(val: str) -> bytes:
    """Hash a key of any length down to the tree's fixed key length."""
    return murmur3_64(val.encode("utf-8"))


def coerce_to_hash_len(val: str) -> bytes:
    """Left-pad a value with zero bytes, or truncate it, to the hash length."""
    raw = val.encode("utf-8")
    return raw.rjust(HASH_LENGTH, b"\x00")[:HASH_LENGTH]


def _trim_leading_zeros(value: bytes) -> bytes:
    if not value:
        return value
    trimmed = value.lstrip(b"\x00")
    # an all-zero value keeps its final byte
    return trimmed if trimmed else value[-1:]


class Ledger:
    """A map whose every state is identified by a root hash.

    Values longer than eight bytes are truncated; shorter ones are stored
    zero-padded and read back without the padding.
    """

    def __init__(
        self,
        retention: Duration = None,
        hash_fn: Callable[..., bytes] = hasher,
    ) -> None:
        self._tree = SparseMerkleTree(hash_fn, None, retention)

    def put(self, key: str, value: str) -> bytes:
        """Add or overwrite ``key`` and return the raw root hash of the new state."""
        return self._tree.update([coerce_key_to_hash_len(key)], [coerce_to_hash_len(value)])

    def delete(self, key: str) -> None:
        """Remove ``key``; earlier states still hold it."""
        self._tree.update([coerce_key_to_hash_len(key)], [DEFAULT_LEAF])

    def get(self, key: str) -> str:
        """Return the current value of ``key``, or an empty string."""
        return self.get_previous_value(self.root_hash(), key)

    def root_hash(self) -> str:
        """Return the base64 encoded root hash of the current state."""
        return base64.b64encode(self._tree.root).decode("ascii")

    def get_previous_value(self, previous_root_hash: str, key: str) -> str:
        """Return the value ``key`` had when the root hash was ``previous_root_hash``.

        Raises ``ValueError`` if the hash is not valid base64 and
        :class:`~meshcore.smt.TrieNodeUnavailableError` if that state is gone.
        """
        try:
            previous = base64.b64decode(previous_root_hash, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"invalid root hash {previous_root_hash!r}: {exc}") from exc
        found: Optional[bytes] = self._tree.get_previous_value(previous, coerce_key_to_hash_len(key))
        return _trim_leading_zeros(found or b"").decode("utf-8", errors="surrogateescape")


def make(retention: Duration) -> Ledger:
    """Return a ledger that retains replaced nodes for ``retention``."""
    return Ledger(retention)