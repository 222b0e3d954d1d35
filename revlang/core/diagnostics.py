"""
Common diagnostic structure shared by every pipeline phase.

Each phase (lexer, parser, checker, runtime) appends `Diagnostic` records to
its own sink; the pipeline surfaces them together instead of stopping at the
first problem. Runtime faults are the exception: a run reports at most one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

from .span import Span

PHASE_LEXER = "lexer"
PHASE_PARSER = "parser"
PHASE_CHECKER = "checker"
PHASE_RUNTIME = "runtime"


@dataclass
class Diagnostic:
	"""Represents a pipeline diagnostic (error/warning)."""

	message: str
	code: str | None = None
	# Phase label: lexer, parser, checker or runtime. Runtime diagnostics are
	# never type errors, and tooling relies on the label to tell them apart.
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)  # Span() denotes unknown.
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	@property
	def is_error(self) -> bool:
		return self.severity == "error"


class DiagnosticSink:
	"""Accumulates diagnostics for one phase."""

	def __init__(self, phase: str, file: str | None = None) -> None:
		self.phase = phase
		self.file = file
		self.items: List[Diagnostic] = []

	def error(self, code: str, message: str, loc: object = None, notes: Iterable[str] = ()) -> Diagnostic:
		return self._add(code, message, loc, "error", notes)

	def warning(self, code: str, message: str, loc: object = None, notes: Iterable[str] = ()) -> Diagnostic:
		return self._add(code, message, loc, "warning", notes)

	def _add(self, code: str, message: str, loc: object, severity: str, notes: Iterable[str]) -> Diagnostic:
		span = Span.from_loc(loc, file=self.file)
		if span.file is None and self.file is not None:
			span = Span(
				file=self.file,
				line=span.line,
				column=span.column,
				end_line=span.end_line,
				end_column=span.end_column,
			)
		diag = Diagnostic(
			message=message,
			code=code,
			phase=self.phase,
			severity=severity,
			span=span,
			notes=list(notes),
		)
		self.items.append(diag)
		return diag

	@property
	def errors(self) -> List[Diagnostic]:
		return [d for d in self.items if d.is_error]

	@property
	def warnings(self) -> List[Diagnostic]:
		return [d for d in self.items if not d.is_error]

	def has_errors(self) -> bool:
		return any(d.is_error for d in self.items)


def format_diagnostic(diag: Diagnostic) -> str:
	"""Render `file:line:col: severity[code]: message` for humans."""
	code = f"[{diag.code}]" if diag.code else ""
	text = f"{diag.span}: {diag.severity}{code}: {diag.message}"
	for note in diag.notes:
		text += f"\n  note: {note}"
	return text


def diagnostic_to_json(diag: Diagnostic) -> dict:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	return {
		"phase": diag.phase,
		"code": diag.code,
		"message": diag.message,
		"severity": diag.severity,
		"file": diag.span.file,
		"line": diag.span.line,
		"column": diag.span.column,
		"notes": list(diag.notes),
	}


__all__ = [
	"Diagnostic",
	"DiagnosticSink",
	"PHASE_CHECKER",
	"PHASE_LEXER",
	"PHASE_PARSER",
	"PHASE_RUNTIME",
	"diagnostic_to_json",
	"format_diagnostic",
]
