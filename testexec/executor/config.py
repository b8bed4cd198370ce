#!/usr/bin/env python3
"""
Executor Configuration

Configuration hierarchy (highest priority first):
1. Explicit kwargs
2. Environment variables (TESTEXEC_*)
3. YAML config file
4. Default values

Usage:
    # Load from YAML
    config = ExecutorConfig.from_yaml("testexec.yaml")

    # Load with overrides
    config = ExecutorConfig.from_yaml("testexec.yaml", max_concurrency=4)

    # Access settings
    config.effective_concurrency
    config.mode
"""

import os
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml


# ============================================================================
# VALIDATION ERRORS
# ============================================================================

class ConfigValidationError(Exception):
    """Configuration validation failed."""
    pass


# ============================================================================
# CONFIGURATION
# ============================================================================

class TestMode(Enum):
    """Test dispatch strategies"""
    __test__ = False

    UNIT = "unit"
    PERFORMANCE = "performance"
    MANUAL = "manual"

    @property
    def label(self) -> str:
        """Human readable test class, e.g. 'unit test'"""
        return f"{self.value} test"

    @property
    def short_name(self) -> str:
        """Short tag used in trace file names"""
        return {"unit": "utest", "performance": "ptest", "manual": "mtest"}[self.value]


@dataclass(frozen=True)
class ExecutionContext:
    """Which side of a fork the current code path runs on."""

    is_child: bool = False

    def as_child(self) -> "ExecutionContext":
        return replace(self, is_child=True)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ExecutorConfig:
    """
    Settings for one executor run.

    Constructed once before any submission and read-only afterwards.
    """

    isolate: bool = True
    max_concurrency: int = 0  # 0 = serial
    mode: TestMode = TestMode.UNIT
    debug: bool = False  # Disables deadline enforcement
    verbose: bool = False

    # Memory tracing
    memtrace: bool = False
    trace_dir: Path = Path(".trace")

    # Performance statistics report, appended to
    report_file: Optional[Path] = None

    # Arguments forwarded to every test body
    args: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        if isinstance(self.mode, str):
            try:
                object.__setattr__(self, "mode", TestMode(self.mode.lower()))
            except ValueError:
                pass  # Rejected by validate() / the dispatcher
        if not isinstance(self.trace_dir, Path):
            object.__setattr__(self, "trace_dir", Path(self.trace_dir))
        if self.report_file is not None and not isinstance(self.report_file, Path):
            object.__setattr__(self, "report_file", Path(self.report_file))
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))

    @property
    def effective_concurrency(self) -> int:
        """Number of task slots: at least one, and exactly one outside unit mode"""
        if self.mode != TestMode.UNIT:
            return 1
        return max(1, self.max_concurrency)

    def validate(self) -> None:
        """Validate executor settings."""
        if not isinstance(self.mode, TestMode):
            valid = [m.value for m in TestMode]
            raise ConfigValidationError(
                f"Invalid mode '{self.mode}'. Must be one of: {valid}"
            )

        if self.max_concurrency < 0:
            raise ConfigValidationError("max_concurrency cannot be negative")

        if self.memtrace and not str(self.trace_dir):
            raise ConfigValidationError("trace_dir cannot be empty when memtrace is enabled")

    @classmethod
    def from_yaml(cls, config_path: str, **overrides) -> "ExecutorConfig":
        """
        Load configuration from YAML file with optional overrides.

        Args:
            config_path: Path to YAML configuration file
            **overrides: Explicit overrides for any config value

        Returns:
            ExecutorConfig instance

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If config file doesn't exist
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            yaml_data = yaml.safe_load(f) or {}

        values = dict(yaml_data.get("executor", {}) or {})

        # Environment beats YAML, explicit kwargs beat both
        values.update(cls._load_from_env())
        values.update(overrides)

        return cls.from_dict(values)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ExecutorConfig":
        """
        Load configuration from dictionary.

        Unknown keys are ignored.
        """
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}

        config = cls(**filtered)
        config.validate()
        return config

    @classmethod
    def _load_from_env(cls) -> Dict[str, Any]:
        """Load configuration overrides from environment variables."""
        overrides = {}

        env_mappings = {
            "TESTEXEC_ISOLATE": ("isolate", _parse_bool),
            "TESTEXEC_MAX_CONCURRENCY": ("max_concurrency", int),
            "TESTEXEC_MODE": ("mode", str),
            "TESTEXEC_DEBUG": ("debug", _parse_bool),
            "TESTEXEC_VERBOSE": ("verbose", _parse_bool),
            "TESTEXEC_MEMTRACE": ("memtrace", _parse_bool),
            "TESTEXEC_TRACE_DIR": ("trace_dir", Path),
            "TESTEXEC_REPORT_FILE": ("report_file", Path),
        }

        for env_var, (field_name, type_fn) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                try:
                    overrides[field_name] = type_fn(value)
                except (ValueError, TypeError):
                    # Skip invalid environment values
                    pass

        return overrides

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d["mode"] = self.mode.value if isinstance(self.mode, TestMode) else self.mode
        d["trace_dir"] = str(self.trace_dir)
        d["report_file"] = str(self.report_file) if self.report_file else None
        d["args"] = list(self.args)
        return d


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

def load_config(config_path: Optional[str] = None, **overrides) -> ExecutorConfig:
    """
    Load configuration with smart defaults.

    Args:
        config_path: Path to YAML config file (optional)
        **overrides: Explicit overrides for any config value

    Returns:
        ExecutorConfig instance
    """
    if config_path:
        return ExecutorConfig.from_yaml(config_path, **overrides)

    default_paths = [
        "testexec.yaml",
        "config/testexec.yaml",
    ]

    for path in default_paths:
        if Path(path).exists():
            return ExecutorConfig.from_yaml(path, **overrides)

    values = ExecutorConfig._load_from_env()
    values.update(overrides)
    return ExecutorConfig.from_dict(values)
