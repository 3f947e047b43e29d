"""Versioned key/value ledger on a sparse Merkle tree, with logging options and log timestamp formatting."""

__version__ = "0.1.0"