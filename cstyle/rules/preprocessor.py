"""Header guard, directive and file-layout rules."""

from __future__ import annotations

from pathlib import PurePath
from re import compile

from cstyle.lexer import directive_comment, directive_parts
from cstyle.rules.base import FileRule, ScannedFile, TokenRule, TokenWindow, Violation
from cstyle.tracker import ContextSnapshot

FILE_TAG_RE = compile(r"@file\s+(?P<name>\S+)")
BRIEF_TAG_RE = compile(r"@brief\s+\S")


class MissingGuardRule(FileRule):
    """Headers are wrapped in a complete #ifndef/#define/#endif include guard."""

    rule_id = "missing-guard"
    category = "preprocessor"
    severity = "error"

    def check_file(self, scanned: ScannedFile) -> list[Violation]:
        if scanned.role != "header":
            return []
        problem = scanned.outcome.guard_problem
        if problem is None:
            return []
        return [self.violation(scanned.path, scanned.view.last_line, 1, problem)]


class EndifCommentRule(TokenRule):
    """Every #endif names the condition it closes in a trailing comment."""

    rule_id = "endif-comment"
    category = "preprocessor"
    severity = "warning"
    token_kinds = frozenset({"directive"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        name, _ = directive_parts(window.token)
        if name != "endif" or directive_comment(window.token):
            return []
        return [
            self.at_token(
                window.view.path,
                window.token,
                "'#endif' must carry a comment naming the condition it closes.",
            )
        ]


class ExternCGuardRule(FileRule):
    """Headers that declare functions wrap them in extern "C" for C++ callers."""

    rule_id = "extern-c-guard"
    category = "preprocessor"
    severity = "warning"

    def check_file(self, scanned: ScannedFile) -> list[Violation]:
        if scanned.role != "header":
            return []
        prototypes = [decl for decl in scanned.outcome.functions if not decl.is_definition]
        if not prototypes:
            return []
        significant = [token for token in scanned.view.tokens if token.is_significant]
        for current, following in zip(significant, significant[1:]):
            if current.text == "extern" and following.text == '"C"':
                return []
        first = prototypes[0].token
        return [
            self.at_token(
                scanned.path,
                first,
                'Function prototypes are not wrapped in an extern "C" block for C++ callers.',
            )
        ]


class FileHeaderRule(FileRule):
    """Files open with a block comment holding '@file <name>' and '@brief'."""

    rule_id = "file-header"
    category = "structure"
    severity = "warning"

    def check_file(self, scanned: ScannedFile) -> list[Violation]:
        leading = next(
            (
                token
                for token in scanned.view.tokens
                if token.kind not in {"whitespace", "newline"}
            ),
            None,
        )
        if leading is None or leading.kind != "comment" or not leading.text.startswith("/*"):
            return [
                self.violation(
                    scanned.path, 1, 1, "File must open with a block comment carrying '@file'."
                )
            ]

        expected = PurePath(scanned.path).name
        match = FILE_TAG_RE.search(leading.text)
        if match is None:
            return [self.at_token(scanned.path, leading, "File header has no '@file' tag.")]
        violations: list[Violation] = []
        if match.group("name") != expected:
            violations.append(
                self.at_token(
                    scanned.path,
                    leading,
                    f"File header names '{match.group('name')}' but the file is '{expected}'.",
                )
            )
        if BRIEF_TAG_RE.search(leading.text) is None:
            violations.append(
                self.at_token(scanned.path, leading, "File header has no '@brief' description.")
            )
        return violations
