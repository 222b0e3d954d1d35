"""REPL-style session: globals persist across inputs."""

from __future__ import annotations

import logging
from typing import Mapping, TextIO

from .checker import Analyzer
from .config import PipelineConfig
from .interp import Interpreter, RunResult
from .parser import parse_program
from .pipeline import apply_warning_policy
from .runtime import HostFunction

logger = logging.getLogger(__name__)


class Session:
	"""
	Evaluates successive inputs against one global scope.

	An input that fails (front end, analysis or runtime) is rolled back: the
	declarations it introduced are forgotten, inferred global and field types
	go back to what they were, and every binding and struct field reachable
	from the globals gets its previous value. Output already written through
	the host bindings cannot be taken back.
	"""

	def __init__(
		self,
		config: PipelineConfig | None = None,
		host: Mapping[str, HostFunction] | None = None,
		stdout: TextIO | None = None,
	) -> None:
		self.config = config or PipelineConfig()
		self.analyzer = Analyzer(self.config, host)
		self.interpreter = Interpreter(self.config, host, stdout)

	def run(self, source: str) -> RunResult:
		parsed = parse_program(source, self.config.filename, self.config.max_nesting_depth)
		if not parsed.ok:
			return RunResult(value=None, diagnostics=parsed.diagnostics)
		checkpoint = self.analyzer.snapshot()
		analysis = apply_warning_policy(self.analyzer.analyze(parsed.program), self.config)
		if not analysis.ok:
			self.analyzer.restore(checkpoint)
			return RunResult(value=None, diagnostics=analysis.diagnostics, warnings=analysis.warnings)
		saved = self.interpreter.checkpoint()
		result = self.interpreter.run(analysis.program)
		if not result.ok:
			logger.debug("rolling back session input after runtime failure")
			self.interpreter.rollback(saved)
			self.analyzer.restore(checkpoint)
		result.warnings = analysis.warnings
		return result

	def names(self) -> list[str]:
		"""Global names currently bound in the session."""
		return sorted(self.analyzer.globals.symbols)


__all__ = ["Session"]
