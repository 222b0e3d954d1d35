"""Shared data structures: spans, diagnostics and types."""

from .diagnostics import Diagnostic, DiagnosticSink, diagnostic_to_json, format_diagnostic
from .span import Span
from .types import Type, TypeKind

__all__ = [
	"Diagnostic",
	"DiagnosticSink",
	"Span",
	"Type",
	"TypeKind",
	"diagnostic_to_json",
	"format_diagnostic",
]
