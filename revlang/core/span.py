# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source positions carried by tokens, AST nodes and diagnostics.

A Span is a best-effort location: `file` may be a pseudo-name such as
`<input>`, and `Span()` denotes an unknown position.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Represents a source position (file/line/column plus an optional end)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None

	@classmethod
	def from_loc(cls, loc: Any, file: Optional[str] = None) -> "Span":
		"""
		Construct a Span from any object exposing `line`/`column` attributes.

		Lark tokens and our own Token records both qualify. If `loc` is
		already a Span it is returned unchanged.
		"""
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			return loc
		return cls(
			file=file,
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
			end_line=getattr(loc, "end_line", None),
			end_column=getattr(loc, "end_column", None),
		)

	def __str__(self) -> str:
		line = "?" if self.line is None else str(self.line)
		column = "?" if self.column is None else str(self.column)
		return f"{self.file or '<input>'}:{line}:{column}"


__all__ = ["Span"]
