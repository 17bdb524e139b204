"""Rules package."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from re import compile
from re import error as RegexError
from typing import Any

from cstyle.classifier import NAMING_CLASSES
from cstyle.rules.base import (
    FileRule,
    Rule,
    RuleConfigError,
    RuleOptions,
    Severity,
    TokenRule,
    UnitRule,
    Violation,
)
from cstyle.rules.control import (
    BraceRequiredRule,
    CaseBreakAlignmentRule,
    FallthroughRule,
    MagicNumberInLoopRule,
    NestingDepthRule,
    SwitchDefaultRule,
)
from cstyle.rules.correspondence import (
    HeaderSourceCorrespondenceRule,
    MissingPrototypeRule,
    PrototypeMismatchRule,
)
from cstyle.rules.declarations import (
    EmptyParameterListRule,
    SignedUnsignedMixRule,
    StructPackingRule,
)
from cstyle.rules.layout import (
    BracePlacementRule,
    CommaSpacingRule,
    IndentWidthRule,
    KeywordSpacingRule,
    LexErrorRule,
    LineWidthRule,
    SpaceAroundOperatorRule,
    TabForbiddenRule,
    TrailingWhitespaceRule,
)
from cstyle.rules.naming import (
    GlobalVariableNamingRule,
    LocalVariableNamingRule,
    MacroNamingRule,
    PrivateFunctionNamingRule,
    PublicFunctionNamingRule,
    TypeNamingRule,
)
from cstyle.rules.preprocessor import (
    EndifCommentRule,
    ExternCGuardRule,
    FileHeaderRule,
    MissingGuardRule,
)

__all__ = [
    "DEFAULT_NAMING_PATTERNS",
    "FileRule",
    "Rule",
    "RuleConfigError",
    "RuleInfo",
    "RuleSet",
    "RuleSetting",
    "TokenRule",
    "UnitRule",
    "Violation",
    "build_rules",
    "list_rule_info",
]

KNOWN_CATEGORIES = {
    "layout",
    "control",
    "naming",
    "types",
    "preprocessor",
    "structure",
}

DEFAULT_NAMING_PATTERNS: dict[str, str] = {
    "macro": r"^[A-Z0-9_]+$",
    "type_name": r"^[seu][A-Z][A-Za-z0-9]*_t$",
    "public_function": r"^[A-Z][A-Za-z0-9]*_[A-Za-z0-9_]+$|^main$",
    "private_function": r"^[a-z][A-Za-z0-9]*$",
    "global_variable": r"^g[A-Za-z0-9_]+$",
    "local_variable": r"^[a-z][A-Za-z0-9]*$",
}


@dataclass(frozen=True, slots=True)
class RuleSetting:
    """Enablement and option overrides for one rule; ``enabled=None`` keeps the default."""

    enabled: bool | None = True
    overrides: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Immutable rule configuration shared by every unit of a run.

    Rules without an entry in ``settings`` keep their default enablement.
    """

    settings: tuple[tuple[str, RuleSetting], ...] = ()
    max_line_width: int = 80
    indent_width: int = 4
    naming: tuple[tuple[str, str], ...] = ()

    def setting(self, rule_id: str) -> RuleSetting | None:
        for known_id, setting in self.settings:
            if known_id == rule_id:
                return setting
        return None

    def naming_patterns(self) -> dict[str, str]:
        patterns = dict(DEFAULT_NAMING_PATTERNS)
        patterns.update(dict(self.naming))
        return patterns


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing and selection."""

    rule_id: str
    name: str
    description: str
    category: str
    severity: Severity
    hook: str
    default_enabled: bool
    enabled: bool
    options: dict[str, Any]


@dataclass(frozen=True, slots=True)
class _RuleSpec:
    rule_id: str
    rule_cls: type[TokenRule] | type[FileRule] | type[UnitRule]
    name: str
    description: str
    category: str
    severity: Severity
    default_enabled: bool


def build_rules(rule_set: RuleSet | None = None) -> list[Rule]:
    """Validate a rule set and instantiate its enabled rules in catalog order."""
    effective = rule_set or RuleSet()
    specs = _ordered_rule_specs()
    registry = {spec.rule_id: spec for spec in specs}

    unknown = [rule_id for rule_id, _ in effective.settings if rule_id not in registry]
    if unknown:
        joined = ", ".join(sorted(set(unknown)))
        raise RuleConfigError(f"Unknown rule ids: {joined}")

    _validate_width(effective.max_line_width, "max_line_width")
    _validate_width(effective.indent_width, "indent_width")
    naming = _validate_naming(effective)

    built: list[Rule] = []
    for spec in specs:
        setting = effective.setting(spec.rule_id)
        enabled = _effective_enabled(spec, setting)
        overrides = dict(setting.overrides) if setting is not None else {}
        values = _validate_overrides(spec, overrides)
        if not enabled:
            continue
        built.append(
            spec.rule_cls(
                RuleOptions(
                    max_line_width=effective.max_line_width,
                    indent_width=effective.indent_width,
                    naming=naming,
                    values=values,
                )
            )
        )
    return built


def list_rule_info(rule_set: RuleSet | None = None) -> list[RuleInfo]:
    """Return metadata for every catalog rule with its effective enablement."""
    effective = rule_set or RuleSet()
    info: list[RuleInfo] = []
    for spec in _ordered_rule_specs():
        setting = effective.setting(spec.rule_id)
        overrides = dict(setting.overrides) if setting is not None else {}
        options = dict(spec.rule_cls.option_defaults)
        options.update(overrides)
        info.append(
            RuleInfo(
                rule_id=spec.rule_id,
                name=spec.name,
                description=spec.description,
                category=spec.category,
                severity=spec.severity,
                hook=spec.rule_cls.hook,
                default_enabled=spec.default_enabled,
                enabled=_effective_enabled(spec, setting),
                options=options,
            )
        )
    return info


def known_rule_ids() -> list[str]:
    return [spec.rule_id for spec in _ordered_rule_specs()]


def _effective_enabled(spec: _RuleSpec, setting: RuleSetting | None) -> bool:
    if setting is None or setting.enabled is None:
        return spec.default_enabled
    return setting.enabled


def _validate_width(value: Any, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise RuleConfigError(f"{field_name} must be a positive integer, got {value!r}.")


def _validate_naming(rule_set: RuleSet) -> dict[str, str]:
    unknown = [name for name, _ in rule_set.naming if name not in NAMING_CLASSES]
    if unknown:
        joined = ", ".join(sorted(set(unknown)))
        choices = ", ".join(NAMING_CLASSES)
        raise RuleConfigError(f"Unknown naming classes: {joined}. Expected one of: {choices}")
    patterns = rule_set.naming_patterns()
    for name, pattern in patterns.items():
        if not isinstance(pattern, str):
            raise RuleConfigError(f"Naming pattern for '{name}' must be a string.")
        try:
            compile(pattern)
        except RegexError as exc:
            raise RuleConfigError(f"Invalid naming pattern for '{name}': {exc}") from exc
    return patterns


def _validate_overrides(spec: _RuleSpec, overrides: dict[str, Any]) -> dict[str, Any]:
    defaults = spec.rule_cls.option_defaults
    unknown = [key for key in overrides if key not in defaults]
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise RuleConfigError(f"Unknown options for rule '{spec.rule_id}': {joined}")

    values = dict(defaults)
    for key, raw in overrides.items():
        expected = type(defaults[key])
        if isinstance(raw, bool) != (expected is bool) or not isinstance(raw, expected):
            raise RuleConfigError(
                f"Option '{key}' of rule '{spec.rule_id}' must be of type {expected.__name__}, "
                f"got {type(raw).__name__}."
            )
        values[key] = raw
    return values


def _ordered_rule_specs() -> list[_RuleSpec]:
    return [
        _spec(LexErrorRule),
        _spec(LineWidthRule),
        _spec(TabForbiddenRule),
        _spec(TrailingWhitespaceRule),
        _spec(IndentWidthRule),
        _spec(BracePlacementRule),
        _spec(SpaceAroundOperatorRule),
        _spec(KeywordSpacingRule),
        _spec(CommaSpacingRule),
        _spec(BraceRequiredRule),
        _spec(NestingDepthRule),
        _spec(FallthroughRule),
        _spec(SwitchDefaultRule),
        _spec(CaseBreakAlignmentRule),
        _spec(MagicNumberInLoopRule),
        _spec(MacroNamingRule),
        _spec(TypeNamingRule),
        _spec(PublicFunctionNamingRule),
        _spec(PrivateFunctionNamingRule),
        _spec(GlobalVariableNamingRule),
        _spec(LocalVariableNamingRule),
        _spec(SignedUnsignedMixRule),
        _spec(StructPackingRule),
        _spec(EmptyParameterListRule),
        _spec(MissingGuardRule),
        _spec(EndifCommentRule),
        _spec(ExternCGuardRule),
        _spec(FileHeaderRule, default_enabled=False),
        _spec(HeaderSourceCorrespondenceRule),
        _spec(PrototypeMismatchRule),
        _spec(MissingPrototypeRule),
    ]


def _spec(
    rule_cls: type[TokenRule] | type[FileRule] | type[UnitRule],
    *,
    default_enabled: bool = True,
) -> _RuleSpec:
    if rule_cls.category not in KNOWN_CATEGORIES:
        raise RuleConfigError(
            f"Rule '{rule_cls.rule_id}' has unknown category '{rule_cls.category}'."
        )
    return _RuleSpec(
        rule_id=rule_cls.rule_id,
        rule_cls=rule_cls,
        name=rule_cls.__name__,
        description=(rule_cls.__doc__ or "").strip(),
        category=rule_cls.category,
        severity=rule_cls.severity,
        default_enabled=default_enabled,
    )
