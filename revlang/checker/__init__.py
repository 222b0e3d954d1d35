"""Semantic analysis: scopes, inference, flow narrowing and trait checks."""

from .analyzer import AnalysisResult, Analyzer, AnalyzerState
from .flow import FlowState
from .scope import FunctionContext, Scope, Symbol
from .traits import StructInfo, TraitInfo

__all__ = [
	"AnalysisResult",
	"Analyzer",
	"AnalyzerState",
	"FlowState",
	"FunctionContext",
	"Scope",
	"StructInfo",
	"Symbol",
	"TraitInfo",
]
