"""Tolerant C tokenizer primitives."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from re import compile
from typing import Literal

TokenKind = Literal[
    "identifier",
    "keyword",
    "punctuator",
    "literal",
    "comment",
    "directive",
    "whitespace",
    "newline",
    "lex_error",
]

KEYWORDS = frozenset(
    {
        "auto",
        "break",
        "case",
        "char",
        "const",
        "continue",
        "default",
        "do",
        "double",
        "else",
        "enum",
        "extern",
        "float",
        "for",
        "goto",
        "if",
        "inline",
        "int",
        "long",
        "register",
        "restrict",
        "return",
        "short",
        "signed",
        "sizeof",
        "static",
        "struct",
        "switch",
        "typedef",
        "union",
        "unsigned",
        "void",
        "volatile",
        "while",
        "_Alignas",
        "_Alignof",
        "_Atomic",
        "_Bool",
        "_Complex",
        "_Generic",
        "_Imaginary",
        "_Noreturn",
        "_Static_assert",
        "_Thread_local",
    }
)

PUNCTUATORS = (
    "...",
    "<<=",
    ">>=",
    "->",
    "++",
    "--",
    "<<",
    ">>",
    "<=",
    ">=",
    "==",
    "!=",
    "&&",
    "||",
    "*=",
    "/=",
    "%=",
    "+=",
    "-=",
    "&=",
    "^=",
    "|=",
    "##",
)

STRING_PREFIXES = frozenset({"L", "u", "U", "u8"})

IDENTIFIER_RE = compile(r"[A-Za-z_]\w*")
NUMBER_RE = compile(r"\.?[0-9](?:[eEpP][+-]|[\w.'])*")
WHITESPACE_RE = compile(r"[ \t\f\v]+|\r(?!\n)")
DIRECTIVE_RE = compile(r"#\s*(?P<name>\w*)\s*(?P<argument>.*)")
COMMENT_IN_DIRECTIVE_RE = compile(r"//.*$|/\*.*?\*/")
DIRECTIVE_COMMENT_RE = compile(r"//(?P<line>.*)$|/\*(?P<block>.*?)\*/")


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexical token with its source position."""

    kind: TokenKind
    text: str
    line: int
    column: int
    offset: int
    message: str = ""

    @property
    def is_significant(self) -> bool:
        """True for tokens that carry program structure."""
        return self.kind not in {"whitespace", "newline", "comment", "directive", "lex_error"}

    @property
    def is_number(self) -> bool:
        return self.kind == "literal" and self.text[:1] in "0123456789."

    @property
    def is_quoted(self) -> bool:
        """True for string and character literals."""
        return self.kind == "literal" and not self.is_number


def tokenize(text: str) -> Iterator[Token]:
    """Yield tokens for C source text, recovering from malformed input."""
    return _Scanner(text).tokens()


def directive_parts(token: Token) -> tuple[str, str]:
    """Split a directive token into its name and argument, comments stripped."""
    joined = token.text.replace("\\\r\n", " ").replace("\\\n", " ")
    match = DIRECTIVE_RE.match(joined)
    if match is None:
        return ("", "")
    argument = COMMENT_IN_DIRECTIVE_RE.sub("", match.group("argument")).strip()
    return (match.group("name"), argument)


def directive_comment(token: Token) -> str | None:
    """Return the trailing comment text of a directive, if any."""
    match = DIRECTIVE_COMMENT_RE.search(token.text)
    if match is None:
        return None
    body = match.group("line") if match.group("line") is not None else match.group("block")
    return body.strip()


class _Scanner:
    """Single-use scanner over one text buffer."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._length = len(text)
        self._pos = 0
        self._line = 1
        self._column = 1
        self._at_line_start = True

    def tokens(self) -> Iterator[Token]:
        text = self._text
        while self._pos < self._length:
            start = self._pos
            char = text[start]

            if char == "\n" or text.startswith("\r\n", start):
                yield self._emit("newline", start + (2 if char == "\r" else 1))
                continue

            match = WHITESPACE_RE.match(text, start)
            if match is not None:
                yield self._emit("whitespace", match.end())
                continue

            if char == "#" and self._at_line_start:
                yield self._emit("directive", self._directive_end(start))
                continue

            if text.startswith("//", start):
                yield self._emit("comment", self._line_end(start))
                continue

            if text.startswith("/*", start):
                close = text.find("*/", start + 2)
                if close < 0:
                    yield self._emit(
                        "lex_error", self._length, message="Unterminated block comment."
                    )
                    continue
                yield self._emit("comment", close + 2)
                continue

            if char in "\"'":
                yield self._quoted(start, start)
                continue

            match = NUMBER_RE.match(text, start)
            if match is not None:
                yield self._emit("literal", match.end())
                continue

            match = IDENTIFIER_RE.match(text, start)
            if match is not None:
                word = match.group(0)
                end = match.end()
                if word in STRING_PREFIXES and text[end : end + 1] in {'"', "'"}:
                    yield self._quoted(start, end)
                    continue
                yield self._emit("keyword" if word in KEYWORDS else "identifier", end)
                continue

            yield self._emit("punctuator", start + self._punctuator_length(start))

    def _quoted(self, start: int, quote_at: int) -> Token:
        text = self._text
        quote = text[quote_at]
        pos = quote_at + 1
        while pos < self._length:
            char = text[pos]
            if char == "\\" and pos + 1 < self._length:
                # a backslash before a line break continues the literal
                pos += 3 if text.startswith("\r\n", pos + 1) else 2
                continue
            if char == quote:
                return self._emit("literal", pos + 1)
            if char in "\r\n":
                break
            pos += 1
        label = "string" if quote == '"' else "character"
        return self._emit(
            "lex_error", self._line_end(start), message=f"Unterminated {label} literal."
        )

    def _directive_end(self, start: int) -> int:
        text = self._text
        pos = start
        while True:
            end = self._line_end(pos)
            if end > pos and text[end - 1] == "\\" and end < self._length:
                pos = end + (2 if text.startswith("\r\n", end) else 1)
                continue
            return end

    def _line_end(self, start: int) -> int:
        end = self._text.find("\n", start)
        if end < 0:
            return self._length
        if end > start and self._text[end - 1] == "\r":
            return end - 1
        return end

    def _punctuator_length(self, start: int) -> int:
        for candidate in PUNCTUATORS:
            if self._text.startswith(candidate, start):
                return len(candidate)
        return 1

    def _emit(self, kind: TokenKind, end: int, *, message: str = "") -> Token:
        start = self._pos
        value = self._text[start:end]
        token = Token(
            kind=kind,
            text=value,
            line=self._line,
            column=self._column,
            offset=start,
            message=message,
        )
        newlines = value.count("\n")
        if newlines:
            self._line += newlines
            self._column = len(value) - value.rfind("\n")
        else:
            self._column += len(value)
        self._pos = end
        if kind == "newline":
            self._at_line_start = True
        elif kind != "whitespace":
            self._at_line_start = False
        return token
