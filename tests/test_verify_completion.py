from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

import pytest

from specgate.application.use_cases.verify_completion import verify_task_completion
from specgate.engine.reason_codes import (
    BLOCKED_REQ_TEST_FAILED,
    BLOCKED_REQ_TEST_MISSING,
    NOT_VERIFIED_RUNTIME_UNKNOWN,
    REASON_CODE_NONE,
)
from specgate.infrastructure.policy_config import CompletionConfig
from specgate.infrastructure.test_runtimes import SuiteRunResult, detect_test_runtime

CONFIG = CompletionConfig()


class RecordingRunner:
    def __init__(self, result: SuiteRunResult):
        self.result = result
        self.calls: list[tuple[list[str], Path, int]] = []

    def __call__(self, argv: Sequence[str], cwd: Path, timeout_seconds: int) -> SuiteRunResult:
        self.calls.append((list(argv), cwd, timeout_seconds))
        return self.result


def _python_project(root: Path) -> None:
    (root / "pyproject.toml").write_text("[project]\nname = 'demo'\n", encoding="utf-8")


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.governance
def test_task_without_requirement_id_passes_without_running_anything(tmp_path: Path):
    runner = RecordingRunner(SuiteRunResult(outcome="failed", returncode=1, output="boom"))
    result = verify_task_completion(subject="Tidy up imports", root=tmp_path, config=CONFIG, runner=runner)
    assert result.decision.status == "pass"
    assert result.req_id is None
    assert runner.calls == []


@pytest.mark.governance
def test_missing_test_reference_blocks_then_passing_suite_allows(tmp_path: Path):
    _python_project(tmp_path)
    runner = RecordingRunner(SuiteRunResult(outcome="passed", returncode=0, output="1 passed"))

    missing = verify_task_completion(subject="REQ-007: export CSV", root=tmp_path, config=CONFIG, runner=runner)
    assert missing.decision.status == "block"
    assert missing.decision.reason_code == BLOCKED_REQ_TEST_MISSING
    assert "REQ-007" in missing.decision.message
    assert "test_*.py" in missing.decision.message
    assert runner.calls == []

    test_file = _write(tmp_path / "tests" / "test_export.py", "def test_csv():  # REQ-007\n    assert True\n")
    done = verify_task_completion(subject="REQ-007: export CSV", root=tmp_path, config=CONFIG, runner=runner)
    assert done.decision.status == "pass"
    assert done.decision.reason_code == REASON_CODE_NONE
    assert done.evidence == (test_file,)
    assert done.runtime == "python"
    assert done.suite_check == "met"
    assert len(runner.calls) == 1
    assert runner.calls[0][1] == tmp_path
    assert runner.calls[0][2] == CONFIG.test_timeout_seconds


@pytest.mark.governance
def test_reference_outside_test_files_does_not_count(tmp_path: Path):
    _write(tmp_path / "src" / "export.py", "# implements REQ-007\n")
    result = verify_task_completion(subject="REQ-007", root=tmp_path, config=CONFIG, runner=RecordingRunner(
        SuiteRunResult(outcome="passed", returncode=0, output="")
    ))
    assert result.decision.reason_code == BLOCKED_REQ_TEST_MISSING


@pytest.mark.governance
def test_unknown_runtime_is_skipped_not_blocked(tmp_path: Path):
    _write(tmp_path / "tests" / "check.sh", "# REQ-003\n")
    runner = RecordingRunner(SuiteRunResult(outcome="failed", returncode=1, output=""))
    result = verify_task_completion(subject="REQ-003 shell check", root=tmp_path, config=CONFIG, runner=runner)
    assert result.decision.status == "pass"
    assert result.decision.reason_code == NOT_VERIFIED_RUNTIME_UNKNOWN
    assert result.suite_check == "skipped"
    assert runner.calls == []


@pytest.mark.governance
def test_unavailable_test_runner_is_skipped(tmp_path: Path):
    _python_project(tmp_path)
    _write(tmp_path / "test_login.py", "# REQ-001\n")
    runner = RecordingRunner(SuiteRunResult(outcome="unavailable", returncode=None, output="No such file"))
    result = verify_task_completion(subject="REQ-001", root=tmp_path, config=CONFIG, runner=runner)
    assert result.decision.status == "pass"
    assert result.decision.reason_code == NOT_VERIFIED_RUNTIME_UNKNOWN
    assert result.suite_check == "skipped"


@pytest.mark.governance
def test_failing_suite_blocks_with_output_excerpt(tmp_path: Path):
    _python_project(tmp_path)
    _write(tmp_path / "tests" / "test_login.py", "# REQ-001\n")
    output = "x" * 5000 + "\nFAILED tests/test_login.py::test_login - AssertionError"
    runner = RecordingRunner(SuiteRunResult(outcome="failed", returncode=1, output=output))
    result = verify_task_completion(subject="REQ-001", root=tmp_path, config=CONFIG, runner=runner)
    assert result.decision.status == "block"
    assert result.decision.reason_code == BLOCKED_REQ_TEST_FAILED
    assert "exited with 1" in result.decision.message
    assert "FAILED tests/test_login.py::test_login" in result.decision.message
    assert "x" * 2000 not in result.decision.message


@pytest.mark.governance
def test_timed_out_suite_blocks(tmp_path: Path):
    _python_project(tmp_path)
    _write(tmp_path / "tests" / "test_slow.py", "# REQ-002\n")
    runner = RecordingRunner(SuiteRunResult(outcome="failed", returncode=None, output="", timed_out=True))
    result = verify_task_completion(subject="REQ-002", root=tmp_path, config=CONFIG, runner=runner)
    assert result.decision.status == "block"
    assert "timed out" in result.decision.message


@pytest.mark.governance
def test_npm_placeholder_test_script_is_not_a_runtime(tmp_path: Path):
    manifest = {"name": "demo", "scripts": {"test": 'echo "Error: no test specified" && exit 1'}}
    (tmp_path / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
    assert detect_test_runtime(tmp_path) is None

    manifest["scripts"]["test"] = "vitest run"
    (tmp_path / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
    runtime = detect_test_runtime(tmp_path)
    assert runtime is not None and runtime.name == "node"
    assert runtime.command(tmp_path) == ["npm", "test", "--silent"]


@pytest.mark.governance
def test_dependency_directories_are_not_searched(tmp_path: Path):
    _write(tmp_path / "node_modules" / "lib" / "test_vendor.py", "# REQ-009\n")
    result = verify_task_completion(subject="REQ-009", root=tmp_path, config=CONFIG, runner=RecordingRunner(
        SuiteRunResult(outcome="passed", returncode=0, output="")
    ))
    assert result.decision.reason_code == BLOCKED_REQ_TEST_MISSING


@pytest.mark.governance
def test_spec_document_does_not_satisfy_traceability(tmp_path: Path):
    _python_project(tmp_path)
    _write(tmp_path / "specs" / "checkout.spec.md", "### REQ-007: Export\n**Verification**: Test\n")
    runner = RecordingRunner(SuiteRunResult(outcome="passed", returncode=0, output=""))
    result = verify_task_completion(
        subject="REQ-007",
        root=tmp_path,
        config=CONFIG,
        spec_dir=tmp_path / "specs",
        runner=runner,
    )
    assert result.decision.reason_code == BLOCKED_REQ_TEST_MISSING
    assert runner.calls == []
