"""Sparse Merkle tree whose superseded nodes are retained for a fixed time.

Nodes are grouped in batches of four tree levels (31 entries). Entry 0 of a
batch flags whether its root is a shortcut node; the remaining entries hold the
children of the nodes inside the batch, indexed as a binary heap. Interior
entries carry a one-byte suffix: 0 for a plain node, 1 for a shortcut node,
and 2 for the key and value stored under a shortcut.
"""

from __future__ import annotations

import threading
from bisect import bisect_left
from typing import Callable, List, Optional, Sequence, Tuple

from meshcore.hashing import HASH_LENGTH, bit_is_set, hasher
from meshcore.trie_cache import Duration, ExpiringCache

__all__ = ["BATCH_LEN", "DEFAULT_LEAF", "TrieNodeUnavailableError", "SparseMerkleTree"]

HashFn = Callable[..., bytes]
Batch = List[Optional[bytes]]

BATCH_LEN = 31
DEFAULT_LEAF = hasher(b"\x00")

_NODE = b"\x00"
_SHORTCUT = b"\x01"
_SHORTCUT_ENTRY = b"\x02"


class TrieNodeUnavailableError(LookupError):
    """Raised when a node needed to walk the tree is no longer cached."""

    def __init__(self, node: bytes) -> None:
        self.node = bytes(node)
        super().__init__(
            f"the trie node {self.node.hex()} is unavailable in the disk db, db may be corrupted"
        )


def _node_key(root: Optional[bytes]) -> bytes:
    return bytes(root or b"")[:HASH_LENGTH].ljust(HASH_LENGTH, b"\x00")


def _split_keys(keys: Sequence[bytes], bit: int) -> Tuple[Sequence[bytes], Sequence[bytes]]:
    for index, key in enumerate(keys):
        if bit_is_set(key, bit):
            return keys[:index], keys[index:]
    return keys, []


def _add_shortcut(
    keys: Sequence[bytes],
    values: Sequence[bytes],
    shortcut_key: bytes,
    shortcut_value: bytes,
) -> Tuple[List[bytes], List[bytes]]:
    """Merge a displaced shortcut key/value into the sorted keys being updated."""
    keys, values = list(keys), list(values)
    if shortcut_key < keys[0]:
        return [shortcut_key, *keys], [shortcut_value, *values]
    if shortcut_key > keys[-1]:
        return [*keys, shortcut_key], [*values, shortcut_value]
    if shortcut_key in keys:
        # the shortcut key itself is being updated
        return keys, values
    position = bisect_left(keys, shortcut_key)
    keys.insert(position, shortcut_key)
    values.insert(position, shortcut_value)
    return keys, values


class SparseMerkleTree:
    """A sparse Merkle tree keyed by fixed-length hashes.

    ``hash_fn`` takes any number of byte strings and hashes their concatenation;
    its output length fixes the height of the tree. ``cache`` holds the node
    batches (a new :class:`ExpiringCache` by default). Nodes replaced outside an
    atomic :meth:`update` are kept for ``retention`` (seconds or a timedelta;
    ``None`` keeps them forever).
    """

    def __init__(
        self,
        hash_fn: HashFn = hasher,
        cache: Optional[ExpiringCache] = None,
        retention: Duration = None,
    ) -> None:
        self._hash = hash_fn
        self._cache = cache if cache is not None else ExpiringCache()
        self._retention = retention
        self._trie_height = len(hash_fn(b"height")) * 8
        self._root = b""
        self._atomic_update = False
        self._lock = threading.RLock()
        self._default_hashes = self._compute_default_hashes()

    def _compute_default_hashes(self) -> List[bytes]:
        hashes = [DEFAULT_LEAF]
        for _ in range(self._trie_height):
            hashes.append(bytes(self._hash(hashes[-1], hashes[-1])))
        return hashes

    @property
    def root(self) -> bytes:
        """The current root hash; empty for an empty tree."""
        return self._root

    def default_hash(self, height: int) -> bytes:
        """Return the hash of an empty subtree of the given height."""
        return self._default_hashes[height]

    def update(self, keys: Sequence[bytes], values: Sequence[bytes]) -> bytes:
        """Set sorted ``keys`` to ``values`` and return the new root.

        A value equal to :data:`DEFAULT_LEAF` deletes its key.
        """
        keys = [bytes(key) for key in keys]
        values = [bytes(value) for value in values]
        if len(keys) != len(values):
            raise ValueError("keys and values must have the same length")
        if not keys:
            raise ValueError("at least one key is required")
        with self._lock:
            self._atomic_update = True
            result = self._apply(self._root, keys, values)
            self._root = bytes(result[:HASH_LENGTH]) if result else b""
            return self._root

    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value of ``key`` in the current tree, or ``None``."""
        return self.get_previous_value(self._root, key)

    def get_previous_value(self, prev_root: Optional[bytes], key: bytes) -> Optional[bytes]:
        """Return the value of ``key`` in the tree whose root was ``prev_root``."""
        with self._lock:
            self._atomic_update = False
            return self._get_node(bytes(prev_root or b""), bytes(key), None, 0, self._trie_height)

    def _apply(self, root: Optional[bytes], keys: Sequence[bytes], values: Sequence[bytes]) -> Optional[bytes]:
        return self._update_node(root, keys, values, None, 0, self._trie_height, False, True)

    def _get_node(
        self, root: Optional[bytes], key: bytes, batch: Optional[Batch], i_batch: int, height: int
    ) -> Optional[bytes]:
        if not root:
            return None
        if height == 0:
            return bytes(root[:HASH_LENGTH])
        batch, i_batch, lnode, rnode, is_shortcut = self._load_children(root, height, i_batch, batch)
        if is_shortcut:
            if lnode[:HASH_LENGTH] == key:
                return bytes(rnode[:HASH_LENGTH])
            return None
        if bit_is_set(key, self._trie_height - height):
            return self._get_node(rnode, key, batch, 2 * i_batch + 2, height - 1)
        return self._get_node(lnode, key, batch, 2 * i_batch + 1, height - 1)

    def _update_node(
        self,
        root: Optional[bytes],
        keys: Sequence[bytes],
        values: Sequence[bytes],
        batch: Optional[Batch],
        i_batch: int,
        height: int,
        shortcut: bool,
        store: bool,
    ) -> Optional[bytes]:
        if height == 0:
            return None if values[0] == DEFAULT_LEAF else values[0]

        batch, i_batch, lnode, rnode, is_shortcut = self._load_children(root, height, i_batch, batch)
        if is_shortcut:
            keys, values = _add_shortcut(keys, values, lnode[:HASH_LENGTH], rnode[:HASH_LENGTH])
            # the shortcut now travels with the keys, so this subtree starts empty
            lnode = rnode = None
            batch[2 * i_batch + 1] = None
            batch[2 * i_batch + 2] = None

        lkeys, rkeys = _split_keys(keys, self._trie_height - height)
        split = len(lkeys)
        lvalues, rvalues = values[:split], values[split:]

        if shortcut:
            # nothing is stored below a shortcut node
            store = False
            shortcut = False
        if not lnode and not rnode and len(keys) == 1 and store:
            if values[0] != DEFAULT_LEAF:
                shortcut = True
            else:
                store = False

        if not lkeys and rkeys:
            right = self._update_node(rnode, keys, values, batch, 2 * i_batch + 2, height - 1, shortcut, store)
            left = lnode
        elif lkeys and not rkeys:
            left = self._update_node(lnode, keys, values, batch, 2 * i_batch + 1, height - 1, shortcut, store)
            right = rnode
        else:
            left = self._update_node(lnode, lkeys, lvalues, batch, 2 * i_batch + 1, height - 1, shortcut, store)
            right = self._update_node(rnode, rkeys, rvalues, batch, 2 * i_batch + 2, height - 1, shortcut, store)
        return self._interior_hash(left, right, height, i_batch, root, shortcut, store, keys, values, batch)

    def _load_children(
        self, root: Optional[bytes], height: int, i_batch: int, batch: Optional[Batch]
    ) -> Tuple[Batch, int, Optional[bytes], Optional[bytes], bool]:
        is_shortcut = False
        if height % 4 == 0:
            if not root:
                batch = [None] * BATCH_LEN
                batch[0] = _NODE
            else:
                batch = self._load_batch(root[:HASH_LENGTH])
            i_batch = 0
            is_shortcut = batch[0][0] == 1
        elif batch[i_batch] and batch[i_batch][HASH_LENGTH] == 1:
            is_shortcut = True
        return batch, i_batch, batch[2 * i_batch + 1], batch[2 * i_batch + 2], is_shortcut

    def _load_batch(self, root: bytes) -> Batch:
        stored = self._cache.get(_node_key(root))
        if stored is None:
            raise TrieNodeUnavailableError(root)
        if self._atomic_update:
            # copy so that every state transition stays readable
            return list(stored)
        return stored

    def _interior_hash(
        self,
        left: Optional[bytes],
        right: Optional[bytes],
        height: int,
        i_batch: int,
        old_root: Optional[bytes],
        shortcut: bool,
        store: bool,
        keys: Sequence[bytes],
        values: Sequence[bytes],
        batch: Batch,
    ) -> Optional[bytes]:
        if not left and not right:
            # every key below was deleted: the node becomes default
            batch[2 * i_batch + 1] = left
            batch[2 * i_batch + 2] = right
            self._delete_old_node(old_root)
            return None
        if not left:
            digest = self._hash(self._default_hashes[height - 1], right[:HASH_LENGTH])
        elif not right:
            digest = self._hash(left[:HASH_LENGTH], self._default_hashes[height - 1])
        else:
            digest = self._hash(left[:HASH_LENGTH], right[:HASH_LENGTH])
        digest = bytes(digest)

        if not store:
            # a node below a shortcut is never stored
            return digest + _NODE
        if shortcut:
            node = digest + _SHORTCUT
            left = bytes(keys[0]) + _SHORTCUT_ENTRY
            right = bytes(values[0]) + _SHORTCUT_ENTRY
        else:
            node = digest + _NODE
        batch[2 * i_batch + 2] = right
        batch[2 * i_batch + 1] = left

        if height % 4 == 0:
            batch[0] = _SHORTCUT if shortcut else _NODE
            self._store_node(batch, node, old_root)
        return node

    def _store_node(self, batch: Batch, node: bytes, old_root: Optional[bytes]) -> None:
        if node != bytes(old_root or b""):
            self._cache.set(_node_key(node), batch)
            self._delete_old_node(old_root)

    def _delete_old_node(self, root: Optional[bytes]) -> None:
        if self._atomic_update:
            # atomic updates keep every intermediate state
            return
        key = _node_key(root)
        stored = self._cache.get(key)
        if stored is not None:
            self._cache.set_with_expiration(key, stored, self._retention)