# meshcore

A small library with two independent parts:

- **A versioned ledger.** This is a key/value map in which every state
  gets its own root hash. Earlier states are kept for a retention
  period. Any state that is still retained can be read back by its root
  hash. The ledger is built on a sparse Merkle tree that uses 64-bit
  MurmurHash3 digests.
- **Logging options.** These are per-scope output levels, stack-trace
  levels and caller settings, held in the compact
  `scope:level,scope:level` form. They come with `argparse` flag
  support and with the UTC timestamp format used in log lines.

The package has no runtime dependencies beyond the Python standard
library. It needs Python 3.10 or newer.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## The ledger

```python
from meshcore.ledger import make

ledger = make(retention=60.0)

ledger.put("foo", "bar")
first = ledger.root_hash()          # base64 text of the current root

ledger.put("foo", "baz")
ledger.put("second", "value")

ledger.get("foo")                   # "baz"
ledger.get("second")                # "value"
ledger.get_previous_value(first, "foo")   # "bar"
ledger.get("missing")               # "" for a key that was never set

ledger.delete("second")
```

### Keys, values and retention

- **Values** are stored in eight bytes. A shorter value is padded on
  the left with zero bytes, and the padding is stripped again when the
  value is read. A longer value is cut to its first eight bytes.
  `coerce_to_hash_len` does the padding.
- **Keys** of any length are first hashed to eight bytes with
  `coerce_key_to_hash_len`.
- **Return value of `put`:** the raw bytes of the new root.
- **Retention** is given in seconds or as a `timedelta`. `None` keeps
  replaced nodes forever.

### Errors

- `get_previous_value` raises `ValueError` for a root hash that is not
  valid base64.
- It raises `meshcore.smt.TrieNodeUnavailableError` when a node of
  that state is no longer held.

### Same contents, same root hash

Writing the same contents back produces the same root hash, whatever
order the writes came in:

```python
from meshcore.ledger import Ledger

ledger = Ledger(retention=60.0)
ledger.put("foo", "bar")
before = ledger.put("second", "value")
ledger.put("foo", "baz")
after = ledger.put("foo", "bar")
assert before == after
```

`Ledger` also takes a `hash_fn` to replace the default hashing.

### The tree underneath

`meshcore.smt.SparseMerkleTree` works on raw eight-byte keys and
values. Its constructor takes `hash_fn`, `cache` and `retention`.

- `update(keys, values)` takes keys in ascending order and returns the
  new root.
  - A value equal to `meshcore.smt.DEFAULT_LEAF` deletes its key.
  - It raises `ValueError` when the two lists differ in length or are
    empty.
- `root` is the current root. It is empty for an empty tree.
- `get(key)` and `get_previous_value(prev_root, key)` read values back.
  They return `None` for a missing key.
- `default_hash(height)` gives the hash of an empty subtree at that
  height.
- Reading a node that is no longer held raises
  `TrieNodeUnavailableError`.

Nodes live in a `meshcore.trie_cache.ExpiringCache`. This is a
thread-safe cache whose entries expire after a default or per-entry
lifetime. It supports `set`, `get`, `set_with_expiration`, `in` and
`len`. Its constructor takes `default_expiration` and an optional
`clock`.

`meshcore.hashing` holds the building blocks:

- `murmur3_64(data)`
- `hasher(*chunks)`
- `bit_is_set(bits, i)`

## Logging options

```python
import argparse

from meshcore.log_options import Level, default_options

options = default_options()
options.set_output_level("default", Level.parse("debug"))
options.set_stack_trace_level("default", Level.parse("error"))
options.set_log_callers("default", True)

options.get_output_level("default")   # Level.DEBUG
options.get_log_callers("default")    # True
```

These calls raise `ValueError`:

- asking for a scope that has no level set;
- reading a malformed level string;
- giving an unknown level name to `Level.parse`.

`convert_scoped_level("default:info")` parses a single entry into a
`(scope, level)` pair.

To expose the options on a command line:

```python
parser = argparse.ArgumentParser()
options = default_options()
options.attach_flags(parser, ["default", "ledger"])
namespace = parser.parse_args(["--log_output_level", "ledger:debug", "--log_as_json"])
options.apply_args(namespace)
```

The flags are:

- `--log_target`
- `--log_rotate`
- `--log_rotate_max_age`
- `--log_rotate_max_size`
- `--log_rotate_max_backups`
- `--log_as_json`
- `--log_output_level`
- `--log_stacktrace_level`
- `--log_caller`

These builder methods record their settings and return the same
options object, so they can be chained:

- `with_stackdriver_logging_format`
- `with_tee_to_stackdriver`
- `with_tee_to_stackdriver_with_quota_project`
- `with_tee_to_uds`

## Timestamps

```python
from datetime import datetime, timezone

from meshcore.log_format import format_date

format_date(datetime(2017, 1, 1, 1, 1, 1, 999, tzinfo=timezone.utc))
# "2017-01-01T01:01:01.000999Z"
```

An aware time is converted to UTC. A naive time is taken to already be
in UTC. The output always has a four-digit year and six-digit
microseconds.

## What this package does not do

**No logger.** The logging part only holds and parses options and
formats timestamps. There are no log scopes, no writing of log lines,
no output sinks or file rotation, and no Cloud Logging or socket
forwarding. The related options are recorded but nothing acts on them.

**No persistent storage.** The ledger keeps its states in memory only,
and they are lost when the process ends.