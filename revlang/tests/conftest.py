# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import io

import pytest

from revlang import analyze, run


@pytest.fixture
def run_source():
	"""Run a program; returns (RunResult, captured stdout)."""

	def _run(source: str, **kwargs):
		out = io.StringIO()
		result = run(source, stdout=out, **kwargs)
		return result, out.getvalue()

	return _run


@pytest.fixture
def codes():
	"""Error codes of an analysis of `source`, in report order."""

	def _codes(source: str) -> list[str]:
		return [d.code for d in analyze(source).diagnostics]

	return _codes
