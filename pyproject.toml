[build-system]
requires = ["setuptools>=61.0"]
build-backend = "setuptools.build_meta"

[project]
name = "meshcore"
version = "0.1.0"
description = "Versioned key/value ledger on a sparse Merkle tree, with scoped logging options and log timestamp formatting."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "ledger",
    "merkle",
    "sparse-merkle-tree",
    "murmur3",
    "logging",
    "cache",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools.packages.find]
include = ["meshcore*"]

[tool.pytest.ini_options]
addopts = "-ra"
