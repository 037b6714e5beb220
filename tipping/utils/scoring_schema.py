"""
Schema validation for stage configurations.

Stage configurations are supplied by the caller (admin forms, JSON fixtures,
management commands) rather than compiled into the engine. This module checks
that a configuration supplied as a plain dictionary is well-formed before it
is turned into a StageConfig.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from ..constants import FIXED_PER_PICK, POOL_SPLIT


@dataclass
class ValidationError:
    """Represents a validation error."""
    path: str
    message: str


class StageConfigValidator:
    """
    Validates stage configurations against the expected schema.

    Expected schema format:
    {
        "id": "group",                    # Stable stage identifier
        "name": "Group Stage",            # Optional display name
        "mode": "FixedPerPick|PoolSplit",
        "base_points": 10,                # Required for FixedPerPick
        "pool": 160,                      # Required for PoolSplit
        "draw_points": 5,                 # Optional, defaults to 0
        "chips_enabled": true|false,      # Optional, FixedPerPick only
        "late_penalty": true|false        # Optional, FixedPerPick only
    }
    """

    MODES = {FIXED_PER_PICK, POOL_SPLIT}

    MODE_REQUIRED_FIELDS = {
        FIXED_PER_PICK: ["base_points"],
        POOL_SPLIT: ["pool"],
    }

    INTEGER_FIELDS = ("base_points", "pool", "draw_points")
    BOOLEAN_FIELDS = ("chips_enabled", "late_penalty")

    def __init__(self):
        self.errors: List[ValidationError] = []

    def validate(self, config: Dict[str, Any]) -> tuple[bool, List[ValidationError]]:
        """
        Validates a single stage configuration.

        Returns:
            (is_valid, errors) tuple
        """
        self.errors = []
        self._validate_stage(config, "")
        return len(self.errors) == 0, self.errors

    def validate_many(self, configs: List[Dict[str, Any]]) -> tuple[bool, List[ValidationError]]:
        """Validates a list of stage configurations, including identifier uniqueness."""
        self.errors = []

        if not isinstance(configs, list):
            self.errors.append(ValidationError("", "Stages must be an array"))
            return False, self.errors

        seen = set()
        chip_stages = 0
        for i, config in enumerate(configs):
            path = f"stages[{i}]"
            self._validate_stage(config, path)
            if not isinstance(config, dict):
                continue
            stage_id = config.get("id")
            if stage_id in seen:
                self.errors.append(
                    ValidationError(f"{path}.id", f"Duplicate stage id '{stage_id}'")
                )
            seen.add(stage_id)
            if config.get("chips_enabled"):
                chip_stages += 1

        if chip_stages > 1:
            self.errors.append(
                ValidationError("", "Only one stage may enable chips")
            )

        return len(self.errors) == 0, self.errors

    def _validate_stage(self, config: Dict[str, Any], path: str):
        """Validates one stage block."""
        if not isinstance(config, dict):
            self.errors.append(ValidationError(path, "Stage config must be a dictionary"))
            return

        prefix = f"{path}." if path else ""

        stage_id = config.get("id")
        if not isinstance(stage_id, str) or not stage_id:
            self.errors.append(
                ValidationError(f"{prefix}id", "Stage must have a non-empty string 'id'")
            )

        if "mode" not in config:
            self.errors.append(ValidationError(f"{prefix}mode", "Stage must have a 'mode'"))
            return

        mode = config["mode"]
        if mode not in self.MODES:
            self.errors.append(
                ValidationError(
                    f"{prefix}mode",
                    f"Unknown mode '{mode}'. Valid: {sorted(self.MODES)}"
                )
            )
            return

        for field in self.MODE_REQUIRED_FIELDS[mode]:
            if field not in config:
                self.errors.append(
                    ValidationError(
                        f"{prefix}{field}",
                        f"Mode '{mode}' requires field '{field}'"
                    )
                )

        for field in self.INTEGER_FIELDS:
            if field not in config:
                continue
            value = config[field]
            if isinstance(value, bool) or not isinstance(value, int):
                self.errors.append(
                    ValidationError(f"{prefix}{field}", f"{field} must be an integer")
                )
            elif value < 0:
                self.errors.append(
                    ValidationError(f"{prefix}{field}", f"{field} must not be negative")
                )

        if mode == POOL_SPLIT and config.get("pool") == 0:
            self.errors.append(ValidationError(f"{prefix}pool", "pool must be positive"))

        for field in self.BOOLEAN_FIELDS:
            if field in config and not isinstance(config[field], bool):
                self.errors.append(
                    ValidationError(f"{prefix}{field}", f"{field} must be boolean")
                )

        if mode == POOL_SPLIT:
            for field in self.BOOLEAN_FIELDS:
                if config.get(field):
                    self.errors.append(
                        ValidationError(
                            f"{prefix}{field}",
                            f"{field} cannot be enabled on a PoolSplit stage"
                        )
                    )


def validate_stage_config(config: Dict[str, Any]) -> tuple[bool, List[ValidationError]]:
    """
    Convenience function to validate a stage configuration.

    Example:
        >>> is_valid, errors = validate_stage_config({"id": "group", "mode": "FixedPerPick"})
        >>> if not is_valid:
        >>>     print(format_validation_errors(errors))
    """
    validator = StageConfigValidator()
    return validator.validate(config)


def validate_stage_configs(configs: List[Dict[str, Any]]) -> tuple[bool, List[ValidationError]]:
    """Convenience function to validate a list of stage configurations."""
    validator = StageConfigValidator()
    return validator.validate_many(configs)


def format_validation_errors(errors: List[ValidationError]) -> str:
    """Formats validation errors into a human-readable string."""
    if not errors:
        return "No errors"

    lines = ["Stage configuration validation errors:"]
    for error in errors:
        if error.path:
            lines.append(f"  - {error.path}: {error.message}")
        else:
            lines.append(f"  - {error.message}")
    return "\n".join(lines)
