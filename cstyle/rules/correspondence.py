"""Cross-file rules evaluated once per header/source unit."""

from __future__ import annotations

from pathlib import PurePath

from cstyle.rules.base import ScannedFile, UnitRule, Violation
from cstyle.tracker import FunctionDecl

ENTRY_POINTS = frozenset({"main"})


class HeaderSourceCorrespondenceRule(UnitRule):
    """A source file shares its header's stem and includes that header."""

    rule_id = "header-source-correspondence"
    category = "structure"
    severity = "warning"

    def check_unit(self, header: ScannedFile, source: ScannedFile) -> list[Violation]:
        header_name = PurePath(header.path).name
        header_stem = PurePath(header.path).stem
        source_stem = PurePath(source.path).stem
        if header_stem != source_stem:
            return [
                self.violation(
                    source.path,
                    1,
                    1,
                    f"Source '{PurePath(source.path).name}' does not share the stem of "
                    f"its header '{header_name}'.",
                )
            ]
        for include in source.outcome.includes:
            if include.quoted and PurePath(include.target).name == header_name:
                return []
        return [
            self.violation(
                source.path, 1, 1, f"Source does not include its own header '{header_name}'."
            )
        ]


class PrototypeMismatchRule(UnitRule):
    """Public function definitions match the signature of their header prototype."""

    rule_id = "prototype-mismatch"
    category = "structure"
    severity = "error"

    def check_unit(self, header: ScannedFile, source: ScannedFile) -> list[Violation]:
        prototypes = _declarations_by_name(header)
        violations: list[Violation] = []
        for definition in _public_definitions(source):
            prototype = prototypes.get(definition.name)
            if prototype is None or prototype.signature == definition.signature:
                continue
            violations.append(
                self.at_token(
                    source.path,
                    definition.token,
                    f"Definition of '{definition.name}' is '{definition.signature}' but "
                    f"{PurePath(header.path).name} declares '{prototype.signature}'.",
                )
            )
        return violations


class MissingPrototypeRule(UnitRule):
    """Every public function defined in a source is declared in its header."""

    rule_id = "missing-prototype"
    category = "structure"
    severity = "warning"

    def check_unit(self, header: ScannedFile, source: ScannedFile) -> list[Violation]:
        prototypes = _declarations_by_name(header)
        return [
            self.at_token(
                source.path,
                definition.token,
                f"Public function '{definition.name}' has no prototype in "
                f"{PurePath(header.path).name}.",
            )
            for definition in _public_definitions(source)
            if definition.name not in prototypes and definition.name not in ENTRY_POINTS
        ]


def _declarations_by_name(header: ScannedFile) -> dict[str, FunctionDecl]:
    declared: dict[str, FunctionDecl] = {}
    for decl in header.outcome.functions:
        declared.setdefault(decl.name, decl)
    return declared


def _public_definitions(source: ScannedFile) -> list[FunctionDecl]:
    return [
        decl
        for decl in source.outcome.functions
        if decl.is_definition and decl.identifier_class == "public_function"
    ]
