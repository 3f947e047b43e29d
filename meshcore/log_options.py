"""Logging options: levels, per-scope level strings and command-line flags."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, List, Optional, Tuple

__all__ = [
    "DEFAULT_SCOPE_NAME",
    "OVERRIDE_SCOPE_NAME",
    "Level",
    "Options",
    "default_options",
    "convert_scoped_level",
]

DEFAULT_SCOPE_NAME = "default"
OVERRIDE_SCOPE_NAME = "all"
DEFAULT_OUTPUT_PATH = "stdout"
DEFAULT_ERROR_OUTPUT_PATH = "stderr"
DEFAULT_ROTATION_MAX_AGE = 30
DEFAULT_ROTATION_MAX_SIZE = 100 * 1024 * 1024
DEFAULT_ROTATION_MAX_BACKUPS = 1000


class Level(IntEnum):
    """Supported log levels, from quietest to most verbose."""

    NONE = 0
    FATAL = 1
    ERROR = 2
    WARN = 3
    INFO = 4
    DEBUG = 5

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, name: str) -> "Level":
        """Return the level called ``name`` (``debug``, ``info``, ... ``none``)."""
        try:
            return cls[name.upper()] if name == name.lower() else cls._invalid(name)
        except KeyError:
            return cls._invalid(name)

    @classmethod
    def _invalid(cls, name: str) -> "Level":
        raise ValueError(f"invalid output level '{name}'")


DEFAULT_OUTPUT_LEVEL = Level.INFO
DEFAULT_STACK_TRACE_LEVEL = Level.NONE

_LEVEL_LIST = "[" + ", ".join(
    str(level) for level in (Level.DEBUG, Level.INFO, Level.WARN, Level.ERROR, Level.FATAL, Level.NONE)
) + "]"


def convert_scoped_level(sl: str) -> Tuple[str, Level]:
    """Split ``scope:level`` (or a bare ``level`` for the default scope)."""
    pieces = sl.split(":")
    if len(pieces) == 1:
        scope, name = DEFAULT_SCOPE_NAME, pieces[0]
    elif len(pieces) == 2:
        scope, name = pieces
    else:
        raise ValueError(f"invalid output level format '{sl}'")
    try:
        level = Level.parse(name)
    except ValueError:
        raise ValueError(f"invalid output level '{sl}'") from None
    return scope, level


def _set_scoped_level(levels_spec: str, scope: str, level: Level) -> str:
    entry = f"{scope}:{level}"
    levels = levels_spec.split(",")
    if scope == DEFAULT_SCOPE_NAME:
        # an entry without a scope prefix stands for the default scope
        for index, item in enumerate(levels):
            if ":" not in item:
                levels[index] = entry
                return ",".join(levels)
    prefix = scope + ":"
    for index, item in enumerate(levels):
        if item.startswith(prefix):
            levels[index] = entry
            return ",".join(levels)
    levels.append(entry)
    return ",".join(levels)


def _get_scoped_level(levels_spec: str, scope: str) -> Level:
    levels = levels_spec.split(",")
    if scope == DEFAULT_SCOPE_NAME:
        for item in levels:
            if ":" not in item:
                return convert_scoped_level(item)[1]
    prefix = scope + ":"
    for item in levels:
        if item.startswith(prefix):
            return convert_scoped_level(item)[1]
    raise ValueError(f"no level defined for scope '{scope}'")


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in ("1", "t", "true"):
        return True
    if lowered in ("0", "f", "false"):
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value '{text}'")


@dataclass
class Options:
    """Settings for the logging subsystem; the defaults are the standard ones."""

    output_paths: List[str] = field(default_factory=lambda: [DEFAULT_OUTPUT_PATH])
    error_output_paths: List[str] = field(default_factory=lambda: [DEFAULT_ERROR_OUTPUT_PATH])
    rotate_output_path: str = ""
    rotation_max_size: int = DEFAULT_ROTATION_MAX_SIZE
    rotation_max_age: int = DEFAULT_ROTATION_MAX_AGE
    rotation_max_backups: int = DEFAULT_ROTATION_MAX_BACKUPS
    json_encoding: bool = False
    log_grpc: bool = False
    output_levels: str = f"{DEFAULT_SCOPE_NAME}:{DEFAULT_OUTPUT_LEVEL}"
    log_callers: str = ""
    stack_trace_levels: str = f"{DEFAULT_SCOPE_NAME}:{DEFAULT_STACK_TRACE_LEVEL}"
    use_stackdriver_format: bool = False
    tee_to_stackdriver: bool = False
    stackdriver_target_project: str = ""
    stackdriver_quota_project: str = ""
    stackdriver_log_name: str = ""
    stackdriver_resource: Any = None
    tee_to_uds_server: bool = False
    uds_socket_address: str = ""
    uds_server_path: str = ""

    def with_stackdriver_logging_format(self) -> "Options":
        """Format output following Stackdriver structured logging conventions."""
        self.use_stackdriver_format = True
        return self

    def with_tee_to_stackdriver(self, project: str, log_name: str, resource: Any) -> "Options":
        """Also send logs to Cloud Logging, billed to ``project``."""
        return self.with_tee_to_stackdriver_with_quota_project(project, project, log_name, resource)

    def with_tee_to_stackdriver_with_quota_project(
        self, project: str, quota_project: str, log_name: str, resource: Any
    ) -> "Options":
        """Also send logs to Cloud Logging with a separate quota project."""
        self.tee_to_stackdriver = True
        self.stackdriver_target_project = project
        self.stackdriver_quota_project = quota_project
        self.stackdriver_log_name = log_name
        self.stackdriver_resource = resource
        return self

    def with_tee_to_uds(self, addr: str, path: str) -> "Options":
        """Also send logs to an HTTP server on socket ``addr`` at ``path``."""
        self.tee_to_uds_server = True
        self.uds_socket_address = addr
        self.uds_server_path = path
        return self

    def set_output_level(self, scope: str, level: Level) -> None:
        """Set the minimum output level for ``scope``."""
        self.output_levels = _set_scoped_level(self.output_levels, scope, Level(level))

    def get_output_level(self, scope: str) -> Level:
        """Return the minimum output level for ``scope``; ``ValueError`` if none is valid."""
        return _get_scoped_level(self.output_levels, scope)

    def set_stack_trace_level(self, scope: str, level: Level) -> None:
        """Set the minimum stack tracing level for ``scope``."""
        self.stack_trace_levels = _set_scoped_level(self.stack_trace_levels, scope, Level(level))

    def get_stack_trace_level(self, scope: str) -> Level:
        """Return the minimum stack tracing level for ``scope``; ``ValueError`` if none is valid."""
        return _get_scoped_level(self.stack_trace_levels, scope)

    def set_log_callers(self, scope: str, include: bool) -> None:
        """Set whether caller locations are logged for ``scope``."""
        scopes = ["" if item == scope else item for item in self.log_callers.split(",")]
        if include:
            if "" in scopes:
                scopes[scopes.index("")] = scope
            else:
                scopes.append(scope)
        self.log_callers = ",".join(scopes)

    def get_log_callers(self, scope: str) -> bool:
        """Return whether caller locations are logged for ``scope``."""
        return scope in self.log_callers.split(",")

    def attach_flags(
        self,
        parser: argparse.ArgumentParser,
        scope_names: Iterable[str] = (DEFAULT_SCOPE_NAME,),
    ) -> None:
        """Add the logging flags to ``parser``, with the current values as defaults."""
        parser.add_argument(
            "--log_target", action="append", default=None,
            help="The set of paths where to output the log. This can be any path as well as "
                 "the special values stdout and stderr",
        )
        parser.add_argument(
            "--log_rotate", default=self.rotate_output_path,
            help="The path for the optional rotating log file",
        )
        parser.add_argument(
            "--log_rotate_max_age", type=int, default=self.rotation_max_age,
            help="The maximum age in days of a log file beyond which the file is rotated "
                 "(0 indicates no limit)",
        )
        parser.add_argument(
            "--log_rotate_max_size", type=int, default=self.rotation_max_size,
            help="The maximum size in megabytes of a log file beyond which the file is rotated",
        )
        parser.add_argument(
            "--log_rotate_max_backups", type=int, default=self.rotation_max_backups,
            help="The maximum number of log file backups to keep before older files are deleted "
                 "(0 indicates no limit)",
        )
        parser.add_argument(
            "--log_as_json", type=_parse_bool, nargs="?", const=True, default=self.json_encoding,
            help="Whether to format output as JSON or in plain console-friendly format",
        )

        names = sorted(set(scope_names))
        if len(names) > 1:
            listed = ", ".join(sorted([*names, OVERRIDE_SCOPE_NAME]))
            output_help = (
                "Comma-separated minimum per-scope logging level of messages to output, in the form of "
                f"<scope>:<level>,<scope>:<level>,... where scope can be one of [{listed}] "
                f"and level can be one of {_LEVEL_LIST}"
            )
            stack_help = (
                "Comma-separated minimum per-scope logging level at which stack traces are captured, "
                f"in the form of <scope>:<level>,<scope:level>,... where scope can be one of [{listed}] "
                f"and level can be one of {_LEVEL_LIST}"
            )
            caller_help = (
                "Comma-separated list of scopes for which to include caller information, "
                f"scopes can be any of [{listed}]"
            )
        else:
            output_help = f"The minimum logging level of messages to output,  can be one of {_LEVEL_LIST}"
            stack_help = f"The minimum logging level at which stack traces are captured, can be one of {_LEVEL_LIST}"
            caller_help = (
                "Comma-separated list of scopes for which to include called information, "
                "scopes can be any of [default]"
            )
        parser.add_argument("--log_output_level", default=self.output_levels, help=output_help)
        parser.add_argument("--log_stacktrace_level", default=self.stack_trace_levels, help=stack_help)
        parser.add_argument("--log_caller", default=self.log_callers, help=caller_help)

    def apply_args(self, namespace: argparse.Namespace) -> "Options":
        """Copy the values of parsed logging flags into these options."""
        values = vars(namespace)
        if values.get("log_target") is not None:
            self.output_paths = list(values["log_target"])
        for dest, attr in (
            ("log_rotate", "rotate_output_path"),
            ("log_rotate_max_age", "rotation_max_age"),
            ("log_rotate_max_size", "rotation_max_size"),
            ("log_rotate_max_backups", "rotation_max_backups"),
            ("log_as_json", "json_encoding"),
            ("log_output_level", "output_levels"),
            ("log_stacktrace_level", "stack_trace_levels"),
            ("log_caller", "log_callers"),
        ):
            if dest in values:
                setattr(self, attr, values[dest])
        return self


def default_options() -> Options:
    """Return a new set of options holding the defaults."""
    return Options()