"""
Pipeline configuration.

Configuration is an explicit value threaded through every stage; nothing in
the pipeline reads process-wide state. `from_env` exists for drivers that want
to honour environment overrides and passes the mapping in explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

DEFAULT_FILENAME = "<input>"
DEFAULT_MAX_CALL_DEPTH = 64
DEFAULT_MAX_NESTING_DEPTH = 64

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class ConfigError(ValueError):
	"""Raised for malformed configuration values."""


@dataclass(frozen=True)
class PipelineConfig:
	# Name used in diagnostic spans.
	filename: str = DEFAULT_FILENAME
	# Maximum nesting of user function calls before a runtime stack overflow.
	max_call_depth: int = DEFAULT_MAX_CALL_DEPTH
	# Maximum syntactic nesting (parenthesized and unary expressions, blocks,
	# types) the parser accepts before reporting a syntax error.
	max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH
	# Collect analyzer warnings (int/float comparisons, unreachable code).
	warnings: bool = True
	# Treat analyzer warnings as errors; failed analysis blocks evaluation.
	warnings_as_errors: bool = False

	def __post_init__(self) -> None:
		if self.max_call_depth < 1:
			raise ConfigError(f"max_call_depth must be positive, got {self.max_call_depth}")
		if self.max_nesting_depth < 1:
			raise ConfigError(f"max_nesting_depth must be positive, got {self.max_nesting_depth}")

	@classmethod
	def from_env(cls, environ: Mapping[str, str], **overrides: object) -> "PipelineConfig":
		values: dict[str, object] = {}
		for key, name in (("REVLANG_MAX_CALL_DEPTH", "max_call_depth"), ("REVLANG_MAX_NESTING_DEPTH", "max_nesting_depth")):
			raw = environ.get(key)
			if raw is not None:
				values[name] = _parse_int(key, raw)
		warnings = environ.get("REVLANG_WARNINGS")
		if warnings is not None:
			values["warnings"] = _parse_bool("REVLANG_WARNINGS", warnings)
		as_errors = environ.get("REVLANG_WARNINGS_AS_ERRORS")
		if as_errors is not None:
			values["warnings_as_errors"] = _parse_bool("REVLANG_WARNINGS_AS_ERRORS", as_errors)
		values.update(overrides)
		return cls(**values)  # type: ignore[arg-type]


def _parse_int(key: str, raw: str) -> int:
	try:
		return int(raw)
	except ValueError:
		raise ConfigError(f"{key} must be an integer, got '{raw}'") from None


def _parse_bool(key: str, raw: str) -> bool:
	lowered = raw.strip().lower()
	if lowered in _TRUTHY:
		return True
	if lowered in _FALSY:
		return False
	raise ConfigError(f"{key} must be a boolean flag, got '{raw}'")


__all__ = ["ConfigError", "PipelineConfig"]
