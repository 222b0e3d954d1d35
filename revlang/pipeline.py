"""
Pipeline entry points: tokenize, analyze, run.

Each stage halts the pipeline when it reports errors: analysis only runs on a
program without lexical or syntax diagnostics, and evaluation only runs on a
program that analyzed cleanly.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Mapping, TextIO

from .checker import AnalysisResult, Analyzer
from .config import PipelineConfig
from .interp import Interpreter, RunResult
from .parser import TokenizeResult, parse_program
from .parser import tokenize as _tokenize
from .runtime import HostFunction

logger = logging.getLogger(__name__)


def tokenize(source: str, config: PipelineConfig | None = None) -> TokenizeResult:
	config = config or PipelineConfig()
	return _tokenize(source, config.filename)


def apply_warning_policy(result: AnalysisResult, config: PipelineConfig) -> AnalysisResult:
	"""Promote warnings to errors when the configuration asks for it."""
	if not config.warnings_as_errors or not result.warnings:
		return result
	promoted = [dataclasses.replace(w, severity="error") for w in result.warnings]
	return AnalysisResult(program=result.program, diagnostics=result.diagnostics + promoted, warnings=[])


def analyze(
	source: str,
	host: Mapping[str, HostFunction] | None = None,
	config: PipelineConfig | None = None,
) -> AnalysisResult:
	"""Lex, parse and analyze `source` without evaluating it."""
	config = config or PipelineConfig()
	parsed = parse_program(source, config.filename, config.max_nesting_depth)
	if not parsed.ok:
		logger.debug("analysis skipped: %d front-end diagnostics", len(parsed.diagnostics))
		return AnalysisResult(program=parsed.program, diagnostics=parsed.diagnostics)
	result = Analyzer(config, host).analyze(parsed.program)
	return apply_warning_policy(result, config)


def run(
	source: str,
	host: Mapping[str, HostFunction] | None = None,
	stdout: TextIO | None = None,
	config: PipelineConfig | None = None,
) -> RunResult:
	"""Run the full pipeline; output goes through the host bindings to `stdout`."""
	config = config or PipelineConfig()
	analysis = analyze(source, host=host, config=config)
	if not analysis.ok:
		return RunResult(value=None, diagnostics=analysis.diagnostics, warnings=analysis.warnings)
	result = Interpreter(config, host, stdout).run(analysis.program)
	result.warnings = analysis.warnings
	return result


__all__ = ["analyze", "apply_warning_policy", "run", "tokenize"]
