"""Tuning configuration loading and validation."""

import os
from typing import Any, Dict, List, Optional

import jsonschema
import yaml

from ..utils.errors import ConfigurationError, format_validation_errors
from . import defaults
from .environment import MANAGED_KEYS
from .schemas import TUNING_SCHEMA
from .settings import TuningSettings


class ConfigValidator:
    """Validates tuning configuration."""

    def validate_tuning(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate a tuning mapping.

        Args:
            config: Tuning mapping loaded from YAML

        Returns:
            List[str]: List of validation errors (empty if valid)
        """
        errors = []

        validator = jsonschema.Draft7Validator(TUNING_SCHEMA)
        for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
            location = ".".join(str(p) for p in error.path)
            errors.append(f"{location}: {error.message}" if location else error.message)

        if config.get("execution_mode") == "regular" and "worker_replicas" in config:
            errors.append("worker_replicas only applies to queue mode")

        extra_env = config.get("extra_env")
        if isinstance(extra_env, dict):
            for key in sorted(MANAGED_KEYS.intersection(extra_env)):
                errors.append(f"extra_env.{key}: managed by n8nstack and cannot be overridden")

        return errors


class TuningLoader:
    """Loads tuning overrides on top of the built-in defaults."""

    def __init__(self, path: Optional[str] = None, verbose: bool = False):
        self.path = path or os.environ.get(defaults.TUNING_FILE_ENV_VAR) or defaults.TUNING_FILE
        self.verbose = verbose
        self.validator = ConfigValidator()

    def load(self) -> TuningSettings:
        """
        Load tuning settings.

        Returns:
            TuningSettings: Defaults, overridden by the tuning file if present

        Raises:
            ConfigurationError: If the file is not valid YAML or fails validation
        """
        if not os.path.exists(self.path):
            return TuningSettings()

        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.path}", details=str(e))

        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.path} must contain a mapping")

        errors = self.validator.validate_tuning(data)
        if errors:
            raise ConfigurationError(
                f"Invalid tuning file {self.path}",
                details=format_validation_errors(errors),
            )

        if self.verbose:
            print(f"Loaded tuning overrides from {self.path}: {', '.join(sorted(data))}")

        return TuningSettings.from_dict(data)
