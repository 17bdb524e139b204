"""Configuration loading for cstyle."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cstyle.rules import RuleSet, RuleSetting, known_rule_ids

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".cstyle.toml", "cstyle.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("cstyle",)
RULES_RESERVED_KEYS = frozenset({"enable", "disable"})


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "human"
    max_line_width: int = 80
    indent_width: int = 4
    jobs: int = 4
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    rule_enable: list[str] | None = None
    rule_disable: list[str] = field(default_factory=list)
    rule_options: dict[str, dict[str, Any]] = field(default_factory=dict)
    naming: dict[str, str] = field(default_factory=dict)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "max_line_width": self.max_line_width,
            "indent_width": self.indent_width,
            "jobs": self.jobs,
            "include": list(self.include),
            "exclude": list(self.exclude),
            "rules": {
                "enable": list(self.rule_enable) if self.rule_enable is not None else None,
                "disable": list(self.rule_disable),
                "options": {key: dict(value) for key, value in self.rule_options.items()},
            },
            "naming": dict(self.naming),
            "source": self.source,
        }

    def to_rule_set(self) -> RuleSet:
        """Resolve enable/disable lists and option tables into an immutable RuleSet.

        Unknown rule ids are passed through so ``build_rules`` can reject them.
        """
        ordered_ids = known_rule_ids()
        requested = set(self.rule_enable or []) | set(self.rule_disable) | set(self.rule_options)
        ordered_ids.extend(sorted(requested.difference(ordered_ids)))
        disabled = set(self.rule_disable)

        settings: list[tuple[str, RuleSetting]] = []
        for rule_id in ordered_ids:
            options = dict(self.rule_options.get(rule_id, {}))
            enabled: bool | None = options.pop("enabled", None)
            if rule_id in disabled:
                enabled = False
            elif self.rule_enable is not None:
                enabled = rule_id in self.rule_enable
            if enabled is None and rule_id not in self.rule_options:
                continue
            settings.append((rule_id, RuleSetting(enabled=enabled, overrides=options)))

        return RuleSet(
            settings=tuple(settings),
            max_line_width=self.max_line_width,
            indent_width=self.indent_width,
            naming=tuple(sorted(self.naming.items())),
        )


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    logger.debug("No configuration found under %s; using defaults", repo)
    return AppConfig()


def default_config_template() -> str:
    """Return a starter config template."""
    return "\n".join(
        [
            'format = "human"',
            "max_line_width = 80",
            "indent_width = 4",
            "jobs = 4",
            'include = ["src/**", "include/**"]',
            "exclude = []",
            "",
            "[rules]",
            "# enable = [\"line-width\", \"missing-guard\"]",
            'disable = ["file-header"]',
            "",
            "[rules.nesting-depth]",
            "max_depth = 2",
            "",
            "[rules.magic-number-in-loop]",
            'allowed = "0"',
            "",
            "[naming]",
            '# macro = "^[A-Z0-9_]+$"',
            '# type_name = "^[seu][A-Z][A-Za-z0-9]*_t$"',
            '# public_function = "^[A-Z][A-Za-z0-9]*_[A-Za-z0-9_]+$|^main$"',
            '# private_function = "^[a-z][A-Za-z0-9]*$"',
            '# global_variable = "^g[A-Za-z0-9_]+$"',
            '# local_variable = "^[a-z][A-Za-z0-9]*$"',
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    rules_mapping = _as_table(mapping.get("rules"), "rules")
    naming_mapping = _as_table(mapping.get("naming"), "naming")

    format_value = _as_choice(mapping.get("format", "human"), {"human", "json"}, "format")
    max_line_width = _as_positive_int(mapping.get("max_line_width", 80), "max_line_width")
    indent_width = _as_positive_int(mapping.get("indent_width", 4), "indent_width")
    jobs = _as_positive_int(mapping.get("jobs", 4), "jobs")

    rule_options: dict[str, dict[str, Any]] = {}
    for key, value in rules_mapping.items():
        if key in RULES_RESERVED_KEYS:
            continue
        table = _as_table(value, f"rules.{key}")
        if "enabled" in table:
            _as_bool(table["enabled"], f"rules.{key}.enabled")
        rule_options[key] = table

    naming: dict[str, str] = {}
    for key, value in naming_mapping.items():
        naming[key] = _as_str(value, f"naming.{key}")

    return AppConfig(
        format=format_value,
        max_line_width=max_line_width,
        indent_width=indent_width,
        jobs=jobs,
        include=_as_str_list(mapping.get("include")),
        exclude=_as_str_list(mapping.get("exclude")),
        rule_enable=_as_str_list_or_none(rules_mapping.get("enable")),
        rule_disable=_as_str_list(rules_mapping.get("disable")),
        rule_options=rule_options,
        naming=naming,
        source=source,
    )


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("Expected a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError("Expected a list of strings")
        items.append(item)
    return items


def _as_str_list_or_none(value: Any) -> list[str] | None:
    if value is None:
        return None
    return _as_str_list(value)


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ValueError(f"{field_name} must be one of: {choices}")
    return value


def _as_positive_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    if raw <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return raw


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ValueError(f"{field_name} must be a boolean")
    return raw
