import hashlib
import random

import pytest

from meshcore.hashing import hasher
from meshcore.smt import DEFAULT_LEAF, SparseMerkleTree, TrieNodeUnavailableError
from meshcore.trie_cache import ExpiringCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def rng():
    return random.Random(1234)


def fresh_data(rng, size):
    return sorted(hasher(rng.randbytes(8)) for _ in range(size))


def new_tree(**kwargs):
    kwargs.setdefault("retention", 60)
    return SparseMerkleTree(hasher, **kwargs)


def test_empty_trie():
    smt = new_tree()
    assert smt.root == b""
    assert smt.get(b"\x00" * 8) is None


def test_internal_update_and_get(rng):
    smt = new_tree()
    keys = fresh_data(rng, 10)
    values = fresh_data(rng, 10)
    root = smt._apply(smt.root, keys, values)
    for key, value in zip(keys, values):
        assert smt.get_previous_value(root, key) == value

    new_keys = fresh_data(rng, 5)
    new_values = fresh_data(rng, 5)
    new_root = smt._apply(root, new_keys, new_values)
    assert new_root != root
    for key, value in zip(new_keys, new_values):
        assert smt.get_previous_value(new_root, key) == value
    for key, value in zip(keys, values):
        assert smt.get_previous_value(new_root, key) == value


def test_atomic_update_keys_accessible(rng):
    smt = new_tree()
    keys = fresh_data(rng, 10)
    values = fresh_data(rng, 10)
    root = smt.update(keys, values)
    for key, value in zip(keys, values):
        assert smt.get_previous_value(root, key) == value


def test_public_update_and_get(rng):
    smt = new_tree()
    keys = fresh_data(rng, 5)
    values = fresh_data(rng, 5)
    root = smt.update(keys, values)
    for key, value in zip(keys, values):
        assert smt.get(key) == value
    assert root == smt.root
    assert len(root) == 8

    new_values = fresh_data(rng, 5)
    smt.update(keys, new_values)
    for key, value in zip(keys, new_values):
        assert smt.get(key) == value

    new_keys = fresh_data(rng, 5)
    newer_values = fresh_data(rng, 5)
    smt.update(new_keys, newer_values)
    for key, value in zip(new_keys, newer_values):
        assert smt.get(key) == value


def test_previous_roots_stay_readable(rng):
    smt = new_tree()
    keys = fresh_data(rng, 5)
    values = fresh_data(rng, 5)
    first_root = smt.update(keys, values)
    smt.update(keys, fresh_data(rng, 5))
    for key, value in zip(keys, values):
        assert smt.get_previous_value(first_root, key) == value


def test_delete(rng):
    smt = new_tree()
    keys = fresh_data(rng, 10)
    values = fresh_data(rng, 10)
    root = smt._apply(smt.root, keys, values)
    assert smt.get_previous_value(root, keys[0]) == values[0]

    new_root = smt._apply(root, keys[:1], [DEFAULT_LEAF])
    assert smt.get_previous_value(new_root, keys[0]) is None

    clean = new_tree()
    clean_root = clean._apply(clean.root, keys[1:], values[1:])
    assert new_root == clean_root

    emptied = smt._apply(root, keys, [DEFAULT_LEAF] * 10)
    assert not emptied


def test_deleting_absent_keys_keeps_root(rng):
    smt = new_tree()
    keys = fresh_data(rng, 2)
    values = fresh_data(rng, 2)
    root = smt.update(keys, values)
    zero = bytes(8)
    assert smt.update([zero, zero], [DEFAULT_LEAF, DEFAULT_LEAF]) == root
    assert smt.root == root


def test_update_and_delete_together(rng):
    smt = new_tree()
    key0 = bytes(8)
    value0 = fresh_data(rng, 1)[0]
    root = smt.update([key0], [value0])

    _, _, k, v, is_shortcut = smt._load_children(root, 64, 0, None)
    assert is_shortcut
    assert k[:8] == key0
    assert v[:8] == value0

    key1 = bytes(7) + b"\x01"
    value1 = fresh_data(rng, 1)[0]
    smt.update([key0, key1], [DEFAULT_LEAF, value1])
    assert smt.get(key1) == value1
    assert smt.get(key0) is None


def test_raises_when_nodes_missing(rng):
    clock = FakeClock()
    smt = new_tree(cache=ExpiringCache(1, clock))
    keys = fresh_data(rng, 10)
    values = fresh_data(rng, 10)
    smt.update(keys, values)
    clock.now = 2
    for key in keys:
        with pytest.raises(TrieNodeUnavailableError, match="is unavailable in the disk db"):
            smt.get(key)


def test_unknown_root_raises():
    smt = new_tree()
    with pytest.raises(TrieNodeUnavailableError) as info:
        smt.get_previous_value(b"\x01" * 8, bytes(8))
    assert info.value.node == b"\x01" * 8
    assert "0101010101010101" in str(info.value)


def test_replaced_nodes_expire_after_retention(rng):
    clock = FakeClock()
    smt = SparseMerkleTree(hasher, ExpiringCache(clock=clock), 5)
    keys = fresh_data(rng, 10)
    values = fresh_data(rng, 10)
    first_root = smt._apply(b"", keys, values)
    new_keys = fresh_data(rng, 5)
    new_values = fresh_data(rng, 5)
    second_root = smt._apply(first_root, new_keys, new_values)

    clock.now = 10
    for key, value in zip(keys + new_keys, values + new_values):
        assert smt.get_previous_value(second_root, key) == value
    with pytest.raises(TrieNodeUnavailableError):
        smt.get_previous_value(first_root, keys[0])


def test_default_hashes():
    smt = new_tree()
    assert smt.default_hash(0) == DEFAULT_LEAF
    assert smt.default_hash(1) == hasher(DEFAULT_LEAF, DEFAULT_LEAF)
    assert smt.default_hash(2) == hasher(smt.default_hash(1), smt.default_hash(1))


def test_root_independent_of_update_order(rng):
    keys = fresh_data(rng, 6)
    values = fresh_data(rng, 6)

    at_once = new_tree()
    at_once.update(keys, values)

    halves = new_tree()
    halves.update(keys[:3], values[:3])
    halves.update(keys[3:], values[3:])

    one_by_one = new_tree()
    for key, value in reversed(list(zip(keys, values))):
        one_by_one.update([key], [value])

    assert at_once.root == halves.root == one_by_one.root


def test_custom_hash_function(rng):
    def blake(*parts):
        return hashlib.blake2b(b"".join(parts), digest_size=8).digest()

    smt = SparseMerkleTree(blake, None, 60)
    keys = fresh_data(rng, 4)
    values = fresh_data(rng, 4)
    smt.update(keys, values)
    for key, value in zip(keys, values):
        assert smt.get(key) == value
    assert smt.default_hash(1) == blake(DEFAULT_LEAF, DEFAULT_LEAF)


def test_mismatched_lengths_rejected(rng):
    smt = new_tree()
    with pytest.raises(ValueError):
        smt.update(fresh_data(rng, 2), fresh_data(rng, 1))
    with pytest.raises(ValueError):
        smt.update([], [])