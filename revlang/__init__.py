"""
revlang: a small statically-typed, type-inferring scripting language.

Pipeline: source -> lexer -> parser -> analyzer -> evaluator.
"""

from .checker import AnalysisResult, Analyzer
from .config import ConfigError, PipelineConfig
from .core.diagnostics import Diagnostic, diagnostic_to_json, format_diagnostic
from .core.span import Span
from .interp import Interpreter, RunResult
from .parser import ParseResult, Token, TokenizeResult, parse_program
from .pipeline import analyze, run, tokenize
from .runtime import DEFAULT_HOST, HostFunction, RuntimeContext, host_function
from .session import Session

__all__ = [
	"AnalysisResult",
	"Analyzer",
	"ConfigError",
	"DEFAULT_HOST",
	"Diagnostic",
	"HostFunction",
	"Interpreter",
	"ParseResult",
	"PipelineConfig",
	"RunResult",
	"RuntimeContext",
	"Session",
	"Span",
	"Token",
	"TokenizeResult",
	"analyze",
	"diagnostic_to_json",
	"format_diagnostic",
	"host_function",
	"parse_program",
	"run",
	"tokenize",
]
