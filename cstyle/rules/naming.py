"""Naming rules, one per identifier class."""

from __future__ import annotations

from re import compile

from cstyle.classifier import IdentifierClass
from cstyle.lexer import directive_parts
from cstyle.rules.base import TokenRule, TokenWindow, Violation
from cstyle.tracker import ContextSnapshot

DEFINE_NAME_RE = compile(r"[A-Za-z_]\w*")


class _ClassNamingRule(TokenRule):
    identifier_class: IdentifierClass = "unclassifiable"
    label = "Identifier"
    token_kinds = frozenset({"identifier"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        if not context.is_declaration or context.identifier_class != self.identifier_class:
            return []
        token = window.token
        pattern = self.options.naming[self.identifier_class]
        if compile(pattern).search(token.text):
            return []
        return [
            self.at_token(
                window.view.path,
                token,
                f"{self.label} '{token.text}' does not match naming pattern '{pattern}'.",
            )
        ]


class MacroNamingRule(TokenRule):
    """Macro names defined with #define are upper case."""

    rule_id = "macro-naming"
    category = "naming"
    severity = "error"
    token_kinds = frozenset({"directive"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        name, argument = directive_parts(window.token)
        if name != "define":
            return []
        match = DEFINE_NAME_RE.match(argument)
        if match is None:
            return []
        macro = match.group(0)
        pattern = self.options.naming["macro"]
        if compile(pattern).search(macro):
            return []
        return [
            self.at_token(
                window.view.path,
                window.token,
                f"Macro '{macro}' does not match naming pattern '{pattern}'.",
            )
        ]


class TypeNamingRule(_ClassNamingRule):
    """typedef names follow the s/e/u prefix and _t suffix convention."""

    rule_id = "type-naming"
    category = "naming"
    severity = "warning"
    identifier_class = "type_name"
    label = "Type"


class PublicFunctionNamingRule(_ClassNamingRule):
    """Public functions are named Module_Function."""

    rule_id = "public-function-naming"
    category = "naming"
    severity = "warning"
    identifier_class = "public_function"
    label = "Public function"


class PrivateFunctionNamingRule(_ClassNamingRule):
    """Static functions use lowerCamelCase."""

    rule_id = "private-function-naming"
    category = "naming"
    severity = "warning"
    identifier_class = "private_function"
    label = "Private function"


class GlobalVariableNamingRule(_ClassNamingRule):
    """File-scope static variables start with 'g'."""

    rule_id = "global-variable-naming"
    category = "naming"
    severity = "warning"
    identifier_class = "global_variable"
    label = "Global variable"


class LocalVariableNamingRule(_ClassNamingRule):
    """Local variables use lowerCamelCase."""

    rule_id = "local-variable-naming"
    category = "naming"
    severity = "warning"
    identifier_class = "local_variable"
    label = "Local variable"
