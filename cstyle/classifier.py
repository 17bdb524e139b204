"""Identifier classification over a bounded token window."""

from __future__ import annotations

from dataclasses import dataclass
from re import compile
from typing import Literal

from cstyle.lexer import Token

IdentifierClass = Literal[
    "macro",
    "type_name",
    "public_function",
    "private_function",
    "global_variable",
    "local_variable",
    "unclassifiable",
]

NAMING_CLASSES: tuple[IdentifierClass, ...] = (
    "macro",
    "type_name",
    "public_function",
    "private_function",
    "global_variable",
    "local_variable",
)

MACRO_SHAPE_RE = compile(r"[A-Z0-9_]*[A-Z][A-Z0-9_]*")

TYPE_KEYWORDS = frozenset(
    {
        "void",
        "char",
        "short",
        "int",
        "long",
        "float",
        "double",
        "signed",
        "unsigned",
        "_Bool",
        "_Complex",
        "const",
        "volatile",
        "restrict",
    }
)
AGGREGATE_KEYWORDS = frozenset({"struct", "union", "enum"})
DECLARATOR_END = frozenset({";", ",", "=", "["})


@dataclass(frozen=True, slots=True)
class IdentifierSite:
    """An identifier occurrence plus the local context needed to classify it.

    ``previous`` holds the significant tokens of the current statement that
    precede the identifier, nearest last. For declarations split by a struct
    body the statement prefix is carried across the braces, so ``typedef``
    stays visible to the name that follows the closing brace.
    """

    token: Token
    previous: tuple[Token, ...]
    next_token: Token | None
    paren_depth: int
    at_file_scope: bool
    in_function_body: bool
    continues_declaration: bool = False


def classify_identifier(site: IdentifierSite) -> IdentifierClass:
    """Return the naming class for an identifier occurrence."""
    text = site.token.text
    qualifiers = _qualifiers(site.previous)

    if not site.in_function_body and MACRO_SHAPE_RE.fullmatch(text):
        return "macro"

    if "typedef" in qualifiers and _is_typedef_name(site):
        return "type_name"

    if site.at_file_scope and _follows_type(site):
        next_text = site.next_token.text if site.next_token is not None else ""
        if next_text == "(":
            return "private_function" if "static" in qualifiers else "public_function"
        if next_text in DECLARATOR_END and "static" in qualifiers:
            return "global_variable"
        return "unclassifiable"

    if site.in_function_body:
        return "local_variable"
    return "unclassifiable"


def is_declaration_site(site: IdentifierSite) -> bool:
    """True when the occurrence introduces the name rather than using it."""
    next_text = site.next_token.text if site.next_token is not None else ""
    if "typedef" in _qualifiers(site.previous):
        return _is_typedef_name(site)
    if not _follows_type(site):
        return False
    if next_text == "(":
        return site.at_file_scope
    return next_text in DECLARATOR_END or next_text == ")"


def _qualifiers(previous: tuple[Token, ...]) -> set[str]:
    return {token.text for token in previous if token.kind == "keyword"}


def _is_typedef_name(site: IdentifierSite) -> bool:
    next_text = site.next_token.text if site.next_token is not None else ""
    previous = site.previous
    if len(previous) >= 2 and previous[-1].text == "*" and previous[-2].text == "(":
        return next_text == ")"
    if site.paren_depth != 0:
        return False
    if previous and previous[-1].kind == "keyword" and previous[-1].text in AGGREGATE_KEYWORDS:
        return False
    return next_text in {";", ",", "["}


def _follows_type(site: IdentifierSite) -> bool:
    """True when the identifier sits where a declarator name is expected."""
    if site.continues_declaration:
        return True
    previous = site.previous
    if not previous:
        return False
    texts = {token.text for token in previous}
    if texts.intersection({"=", "return", "(", "?", ":"}) and not site.paren_depth:
        return False
    last = previous[-1]
    if last.text == "*":
        return _follows_type_before_pointer(previous)
    if last.kind == "keyword":
        return last.text in TYPE_KEYWORDS
    if last.kind == "identifier":
        if len(previous) >= 2 and previous[-2].text in AGGREGATE_KEYWORDS:
            return True
        return not _is_expression_context(previous[:-1])
    if last.text == "}":
        return bool(texts.intersection(AGGREGATE_KEYWORDS))
    return False


def _follows_type_before_pointer(previous: tuple[Token, ...]) -> bool:
    index = len(previous) - 1
    while index >= 0 and previous[index].text == "*":
        index -= 1
    if index < 0:
        return False
    token = previous[index]
    if token.kind == "keyword":
        return token.text in TYPE_KEYWORDS
    return token.kind == "identifier" and not _is_expression_context(previous[:index])


def _is_expression_context(previous: tuple[Token, ...]) -> bool:
    """True when the tokens before a type-like identifier make it an operand."""
    if not previous:
        return False
    last = previous[-1]
    if last.kind == "identifier" or last.kind == "literal":
        return True
    if last.kind == "keyword":
        return last.text not in TYPE_KEYWORDS and last.text not in {
            "static",
            "extern",
            "inline",
            "register",
            "auto",
            "typedef",
            "_Thread_local",
            "struct",
            "union",
            "enum",
        }
    return last.text not in {"(", ",", "{", "}", ";", "*"}
