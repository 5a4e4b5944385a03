"""
Compiler configuration for Lumo.

The configuration record arrives from outside the compiler (a CLI or a
config file loader) with camelCase keys; inside the compiler the same
options are a ``CompilerOptions`` dataclass.

Defaults are explicit: type checking runs (``type_check=True``) in
lenient mode (``strict=False``), so type errors are reported as warnings
and generation proceeds. Reference errors are fatal in both modes.

Author: xwest
"""

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised for a configuration value the compiler cannot honour."""
    pass


class Target(Enum):
    """Deployment environment of the generated JavaScript."""
    NODE = "node"
    BROWSER = "browser"

    @classmethod
    def parse(cls, value: Any) -> "Target":
        if isinstance(value, Target):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(t.value for t in cls)
            raise ConfigurationError(f"Unknown target '{value}' (expected one of: {choices})") from None


# External (camelCase) key -> dataclass field
OPTION_KEYS = {
    "target": "target",
    "strict": "strict",
    "typeCheck": "type_check",
    "treeShake": "tree_shake",
    "minify": "minify",
    "obfuscateRuntime": "obfuscate_runtime",
    "credits": "credits",
    "sourceMap": "source_map",
}


@dataclass(frozen=True)
class CompilerOptions:
    """Options for compiling one unit."""
    target: Target = Target.NODE
    strict: bool = False
    type_check: bool = True
    tree_shake: bool = True

    # Post-processing toggles; the compiler passes them through without
    # interpreting them
    minify: bool = False
    obfuscate_runtime: bool = False
    credits: bool = False
    source_map: bool = False

    def __post_init__(self):
        object.__setattr__(self, "target", Target.parse(self.target))
        for option in fields(self):
            if option.name == "target":
                continue
            value = getattr(self, option.name)
            if not isinstance(value, bool):
                raise ConfigurationError(
                    f"Option '{option.name}' must be a boolean, got {type(value).__name__}")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "CompilerOptions":
        """
        Build options from an external configuration record.

        Accepts camelCase keys (``typeCheck``) and the snake_case field
        names (``type_check``). Unknown keys are ignored with a warning.
        """
        field_names = {option.name for option in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in mapping.items():
            name = OPTION_KEYS.get(key, key)
            if name not in field_names:
                logger.warning("Ignoring unknown compiler option '%s'", key)
                continue
            values[name] = value
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """External (camelCase) form of these options."""
        return {
            key: (getattr(self, name).value if name == "target" else getattr(self, name))
            for key, name in OPTION_KEYS.items()
        }

    def with_changes(self, **changes) -> "CompilerOptions":
        return replace(self, **changes)
