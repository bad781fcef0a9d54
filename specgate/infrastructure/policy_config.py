"""Loader for the specgate policy file.

The bundled `diagnostics/specgate_policy.yaml` is the default. An explicit
policy path (argument or `SPECGATE_POLICY_FILE`) is fail-closed: if it is
missing or invalid the hook refuses to guess and raises `PolicyConfigError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from specgate.domain.freshness import (
    DEFAULT_BLOCK_TTL_SECONDS,
    DEFAULT_READ_TTL_SECONDS,
    DEFAULT_SPEC_TTL_SECONDS,
)

POLICY_SCHEMA = "specgate.policy.v1"
POLICY_FILE_ENV = "SPECGATE_POLICY_FILE"


class PolicyConfigError(Exception):
    """Raised when a policy file is missing or invalid."""


@dataclass(frozen=True)
class PathsConfig:
    spec_dir: str = "specs"
    spec_glob: str = "*.md"
    default_spec_file: str = "spec.md"
    marker_dir: str = ".specgate/markers"
    log_dir: str = ".specgate/logs"


@dataclass(frozen=True)
class FreshnessConfig:
    block_ttl_seconds: int = DEFAULT_BLOCK_TTL_SECONDS
    read_ttl_seconds: int = DEFAULT_READ_TTL_SECONDS
    spec_ttl_seconds: int = DEFAULT_SPEC_TTL_SECONDS


@dataclass(frozen=True)
class GateConfig:
    edit_tools: tuple[str, ...] = ("Write", "Edit", "MultiEdit", "NotebookEdit")
    execute_tools: tuple[str, ...] = ("Bash",)
    # Tools outside edit/execute/read-only lists count as mutating.
    read_only_tools: tuple[str, ...] = (
        "Read",
        "Grep",
        "Glob",
        "LS",
        "NotebookRead",
        "WebFetch",
        "WebSearch",
        "TodoWrite",
        "Task",
        "BashOutput",
        "ExitPlanMode",
        "mcp__context7__resolve-library-id",
        "mcp__context7__get-library-docs",
    )
    read_only_commands: tuple[str, ...] = (
        "git status",
        "git log",
        "git diff",
        "git show",
        "ls",
        "pwd",
        "cd",
        "cat",
        "head",
        "grep",
        "rg",
        "find",
        "tree",
        "wc",
        "which",
        "echo",
        "true",
    )
    disqualifying_tokens: tuple[str, ...] = (
        "&",
        ";",
        "|",
        ">",
        "<",
        "`",
        "$(",
        "-delete",
        "-exec",
        "--output",
        "-fprint",
        "-fprintf",
        "-fls",
    )


@dataclass(frozen=True)
class AdvisoryConfig:
    enabled: bool = True
    preparation_tools: Mapping[str, str] = field(
        default_factory=lambda: {
            "WebFetch": "docs-lookup",
            "WebSearch": "docs-lookup",
            "Grep": "pattern-search",
            "Glob": "pattern-search",
        }
    )


@dataclass(frozen=True)
class CompletionConfig:
    test_file_patterns: tuple[str, ...] = (
        "test_*.py",
        "*_test.py",
        "*.test.*",
        "*.spec.*",
        "*_test.go",
        "*Test.java",
        "*Tests.cs",
        "*_spec.rb",
    )
    test_dir_names: tuple[str, ...] = ("tests", "test", "__tests__", "e2e")
    skip_dir_names: tuple[str, ...] = (
        ".git",
        ".hg",
        ".specgate",
        "node_modules",
        ".venv",
        "venv",
        "__pycache__",
        "dist",
        "build",
        "target",
        ".next",
    )
    max_file_bytes: int = 1024 * 1024
    test_timeout_seconds: int = 300
    excerpt_chars: int = 1500


@dataclass(frozen=True)
class DiagnosticsConfig:
    retention_days: int = 30


@dataclass(frozen=True)
class SpecgatePolicy:
    paths: PathsConfig = field(default_factory=PathsConfig)
    freshness: FreshnessConfig = field(default_factory=FreshnessConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    advisory: AdvisoryConfig = field(default_factory=AdvisoryConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SpecgatePolicy":
        paths_data = _section(data, "paths")
        defaults_paths = PathsConfig()
        paths = PathsConfig(
            spec_dir=str(paths_data.get("spec_dir", defaults_paths.spec_dir)),
            spec_glob=str(paths_data.get("spec_glob", defaults_paths.spec_glob)),
            default_spec_file=str(paths_data.get("default_spec_file", defaults_paths.default_spec_file)),
            marker_dir=str(paths_data.get("marker_dir", defaults_paths.marker_dir)),
            log_dir=str(paths_data.get("log_dir", defaults_paths.log_dir)),
        )

        freshness_data = _section(data, "freshness")
        freshness = FreshnessConfig(
            block_ttl_seconds=_positive_int(freshness_data, "block_ttl_seconds", DEFAULT_BLOCK_TTL_SECONDS),
            read_ttl_seconds=_positive_int(freshness_data, "read_ttl_seconds", DEFAULT_READ_TTL_SECONDS),
            spec_ttl_seconds=_positive_int(freshness_data, "spec_ttl_seconds", DEFAULT_SPEC_TTL_SECONDS),
        )

        gate_data = _section(data, "gate")
        defaults_gate = GateConfig()
        gate = GateConfig(
            edit_tools=_str_tuple(gate_data, "edit_tools", defaults_gate.edit_tools),
            execute_tools=_str_tuple(gate_data, "execute_tools", defaults_gate.execute_tools),
            read_only_tools=_str_tuple(gate_data, "read_only_tools", defaults_gate.read_only_tools),
            read_only_commands=_str_tuple(gate_data, "read_only_commands", defaults_gate.read_only_commands),
            disqualifying_tokens=_str_tuple(gate_data, "disqualifying_tokens", defaults_gate.disqualifying_tokens),
        )

        advisory_data = _section(data, "advisory")
        tools_raw = advisory_data.get("preparation_tools")
        if tools_raw is None:
            preparation_tools: Mapping[str, str] = AdvisoryConfig().preparation_tools
        elif isinstance(tools_raw, dict):
            preparation_tools = {str(k): str(v) for k, v in tools_raw.items()}
        else:
            raise PolicyConfigError("advisory.preparation_tools must be a mapping of tool name to tag")
        advisory = AdvisoryConfig(
            enabled=bool(advisory_data.get("enabled", True)),
            preparation_tools=preparation_tools,
        )

        completion_data = _section(data, "completion")
        defaults_completion = CompletionConfig()
        completion = CompletionConfig(
            test_file_patterns=_str_tuple(completion_data, "test_file_patterns", defaults_completion.test_file_patterns),
            test_dir_names=_str_tuple(completion_data, "test_dir_names", defaults_completion.test_dir_names),
            skip_dir_names=_str_tuple(completion_data, "skip_dir_names", defaults_completion.skip_dir_names),
            max_file_bytes=_positive_int(completion_data, "max_file_bytes", defaults_completion.max_file_bytes),
            test_timeout_seconds=_positive_int(
                completion_data, "test_timeout_seconds", defaults_completion.test_timeout_seconds
            ),
            excerpt_chars=_positive_int(completion_data, "excerpt_chars", defaults_completion.excerpt_chars),
        )

        diagnostics_data = _section(data, "diagnostics")
        diagnostics = DiagnosticsConfig(
            retention_days=_positive_int(diagnostics_data, "retention_days", DiagnosticsConfig().retention_days),
        )

        return cls(
            paths=paths,
            freshness=freshness,
            gate=gate,
            advisory=advisory,
            completion=completion,
            diagnostics=diagnostics,
        )


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PolicyConfigError(f"Policy section '{key}' must be a mapping")
    return value


def _positive_int(data: Mapping[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise PolicyConfigError(f"Policy value '{key}' must be a positive integer, got {value!r}")
    return value


def _str_tuple(data: Mapping[str, Any], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise PolicyConfigError(f"Policy value '{key}' must be a list of strings")
    return tuple(value)


def bundled_policy_path() -> Path:
    # specgate/infrastructure/policy_config.py -> <root>/diagnostics/
    return Path(__file__).resolve().parents[2] / "diagnostics" / "specgate_policy.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise PolicyConfigError(f"Policy file not readable ({path}): {exc}") from exc
    if not isinstance(data, dict) or not data:
        raise PolicyConfigError(f"Policy file empty/invalid: {path}")
    policy = data.get("policy")
    if not isinstance(policy, dict) or policy.get("schema") != POLICY_SCHEMA:
        raise PolicyConfigError(f"Policy file must declare policy.schema: {POLICY_SCHEMA} ({path})")
    return data


def load_policy(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> SpecgatePolicy:
    """Load policy from an explicit path, the env override, or the bundled file.

    When no explicit path is configured and the bundled file is absent (for
    example in a wheel without data files) built-in defaults apply.
    """

    environment = os.environ if env is None else env
    explicit = path
    if explicit is None:
        raw = str(environment.get(POLICY_FILE_ENV, "")).strip()
        if raw:
            explicit = Path(raw).expanduser()

    if explicit is not None:
        if not explicit.is_file():
            raise PolicyConfigError(f"Policy file missing: {explicit}")
        return SpecgatePolicy.from_dict(_load_yaml(explicit))

    bundled = bundled_policy_path()
    if bundled.is_file():
        return SpecgatePolicy.from_dict(_load_yaml(bundled))
    return SpecgatePolicy()
