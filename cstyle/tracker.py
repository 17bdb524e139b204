"""Structural tracking: scope stack, switch/case and header-guard state machines."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from re import IGNORECASE, compile
from typing import Literal

from cstyle.classifier import (
    AGGREGATE_KEYWORDS,
    DECLARATOR_END,
    IdentifierClass,
    IdentifierSite,
    classify_identifier,
    is_declaration_site,
)
from cstyle.lexer import Token, directive_parts

ConstructKind = Literal[
    "function",
    "if",
    "else",
    "switch",
    "loop",
    "struct",
    "enum",
    "initializer",
    "extern",
    "block",
]
SwitchState = Literal["outside_switch", "in_switch", "in_case"]
GuardState = Literal["start", "saw_ifndef", "saw_define", "guarded", "closed", "broken"]
Signedness = Literal["signed", "unsigned"]

CONTROL_KEYWORDS: dict[str, ConstructKind] = {
    "if": "if",
    "for": "loop",
    "while": "loop",
    "switch": "switch",
}
TERMINATORS = frozenset({"break", "return", "continue", "goto"})
STORAGE_KEYWORDS = frozenset({"static", "extern", "inline", "register", "auto", "_Thread_local"})
TYPE_QUALIFIERS = frozenset({"const", "volatile", "restrict", "_Atomic"})
FALLTHROUGH_RE = compile(r"fall[\s-]*through", IGNORECASE)

UNSIGNED_TYPES = frozenset(
    {
        "unsigned",
        "uint8_t",
        "uint16_t",
        "uint32_t",
        "uint64_t",
        "uint_least8_t",
        "uint_least16_t",
        "uint_least32_t",
        "uint_least64_t",
        "uint_fast8_t",
        "uint_fast16_t",
        "uint_fast32_t",
        "uint_fast64_t",
        "uintptr_t",
        "uintmax_t",
        "size_t",
    }
)
SIGNED_TYPES = frozenset(
    {
        "signed",
        "int",
        "short",
        "long",
        "int8_t",
        "int16_t",
        "int32_t",
        "int64_t",
        "int_least8_t",
        "int_least16_t",
        "int_least32_t",
        "int_least64_t",
        "int_fast8_t",
        "int_fast16_t",
        "int_fast32_t",
        "int_fast64_t",
        "intptr_t",
        "intmax_t",
        "ptrdiff_t",
        "ssize_t",
    }
)

_MAX_STATEMENT_TOKENS = 48


@dataclass(frozen=True, slots=True)
class StructMember:
    """A member declaration inside a struct or union body."""

    name: str
    type_text: str
    token: Token
    pointer: bool = False
    array: bool = False


@dataclass(frozen=True, slots=True)
class ScopeFrame:
    """One brace-delimited scope on the structural stack."""

    kind: ConstructKind
    open_token: Token
    keyword_token: Token | None = None
    name: str | None = None
    symbols: dict[str, Signedness] = field(default_factory=dict)
    members: tuple[StructMember, ...] = ()


@dataclass(frozen=True, slots=True)
class ScopeOpened:
    frame: ScopeFrame


@dataclass(frozen=True, slots=True)
class ScopeClosed:
    frame: ScopeFrame
    close_token: Token


@dataclass(frozen=True, slots=True)
class HeaderClosed:
    """The closing parenthesis of an if/for/while/switch header."""

    keyword: Token
    close_token: Token
    do_while: bool = False


@dataclass(frozen=True, slots=True)
class FallthroughCandidate:
    case_token: Token


@dataclass(frozen=True, slots=True)
class CaseTerminated:
    case_token: Token
    first_statement: Token | None
    terminator: Token | None


@dataclass(frozen=True, slots=True)
class SwitchClosed:
    switch_token: Token | None
    has_default: bool
    close_token: Token


TrackerEvent = (
    ScopeOpened
    | ScopeClosed
    | HeaderClosed
    | FallthroughCandidate
    | CaseTerminated
    | SwitchClosed
)


@dataclass(frozen=True, slots=True)
class ContextSnapshot:
    """Read-only view of the structural state after consuming one token."""

    token: Token
    frames: tuple[ScopeFrame, ...] = ()
    paren_depth: int = 0
    switch_state: SwitchState = "outside_switch"
    identifier_class: IdentifierClass | None = None
    is_declaration: bool = False
    loop_condition: bool = False
    last_tokens: tuple[Token, ...] = ()
    file_symbols: dict[str, Signedness] = field(default_factory=dict)
    events: tuple[TrackerEvent, ...] = ()

    @property
    def depth(self) -> int:
        return len(self.frames)

    @property
    def at_file_scope(self) -> bool:
        return self.paren_depth == 0 and all(frame.kind == "extern" for frame in self.frames)

    @property
    def in_function_body(self) -> bool:
        return any(frame.kind == "function" for frame in self.frames)

    @property
    def conditional_depth(self) -> int:
        """Number of enclosing braced if/else constructs."""
        return sum(1 for frame in self.frames if frame.kind in {"if", "else"})

    def signedness(self, name: str) -> Signedness | None:
        for frame in reversed(self.frames):
            if name in frame.symbols:
                return frame.symbols[name]
        return self.file_symbols.get(name)


@dataclass(frozen=True, slots=True)
class FunctionDecl:
    """A function prototype or definition seen at file scope."""

    name: str
    identifier_class: IdentifierClass
    signature: str
    token: Token
    is_definition: bool


@dataclass(frozen=True, slots=True)
class IncludeDirective:
    target: str
    quoted: bool
    token: Token


@dataclass(frozen=True, slots=True)
class TrackerOutcome:
    """End-of-file results of a tracker pass."""

    guard_problem: str | None
    functions: tuple[FunctionDecl, ...]
    includes: tuple[IncludeDirective, ...]


_GUARD_TRANSITIONS: dict[tuple[GuardState, str], GuardState] = {
    ("start", "ifndef"): "saw_ifndef",
    ("saw_ifndef", "define"): "saw_define",
    ("saw_define", "endif"): "closed",
    ("saw_define", "conditional"): "guarded",
    ("saw_define", "directive"): "guarded",
    ("saw_define", "code"): "guarded",
    ("guarded", "endif"): "closed",
    ("guarded", "conditional"): "guarded",
    ("guarded", "directive"): "guarded",
    ("guarded", "code"): "guarded",
}


class HeaderGuardTracker:
    """Validates the ``#ifndef X`` / ``#define X`` / ``#endif`` layout of a header."""

    def __init__(self) -> None:
        self.state: GuardState = "start"
        self.macro: str | None = None
        self.problem: str | None = None
        self._nesting = 0

    def feed_directive(self, name: str, argument: str) -> None:
        if self.state == "broken":
            return
        macro = argument.split()[0] if argument.split() else ""

        if self.state == "start" and name == "ifndef":
            self.macro = macro
            self._advance("ifndef")
            return
        if self.state == "saw_ifndef" and name == "define":
            if macro != self.macro:
                self._break(f"Guard macro mismatch: '#ifndef {self.macro}' vs '#define {macro}'.")
                return
            self._advance("define")
            return
        if self.state in {"saw_define", "guarded"}:
            if name in {"if", "ifdef", "ifndef"}:
                self._nesting += 1
                self._advance("conditional")
                return
            if name == "endif":
                if self._nesting:
                    self._nesting -= 1
                    self._advance("directive")
                    return
                self._advance("endif")
                return
        self._advance("directive")

    def feed_code(self) -> None:
        if self.state != "broken":
            self._advance("code")

    def finish(self) -> str | None:
        """Return a description of the guard problem, or None when valid."""
        if self.state == "closed":
            return None
        if self.state == "broken":
            return self.problem
        if self.state == "start":
            return "Header has no include guard."
        return f"Include guard '#ifndef {self.macro}' has no closing '#endif'."

    def _advance(self, event: str) -> None:
        next_state = _GUARD_TRANSITIONS.get((self.state, event))
        if next_state is not None:
            self.state = next_state
            return
        if self.state == "start":
            self._break("Header must open with '#ifndef <GUARD>' before any other content.")
        elif self.state == "saw_ifndef":
            self._break(f"'#ifndef {self.macro}' must be followed by '#define {self.macro}'.")
        else:
            self._break("Content after the closing '#endif' is not enclosed by the include guard.")

    def _break(self, problem: str) -> None:
        self.state = "broken"
        self.problem = problem


_SWITCH_TRANSITIONS: dict[tuple[SwitchState, str], SwitchState] = {
    ("outside_switch", "open"): "in_switch",
    ("in_switch", "label"): "in_case",
    ("in_case", "label"): "in_case",
    ("in_switch", "close"): "outside_switch",
    ("in_case", "close"): "outside_switch",
}


@dataclass(slots=True)
class _SwitchContext:
    switch_token: Token | None
    body_depth: int
    state: SwitchState = "outside_switch"
    case_token: Token | None = None
    label_pending: bool = False
    has_statement: bool = False
    first_statement: Token | None = None
    terminator: Token | None = None
    terminating: bool = False
    terminated: bool = False
    fallthrough_marked: bool = False
    has_default: bool = False


class SwitchCaseTracker:
    """Tracks case termination inside (possibly nested) switch bodies."""

    def __init__(self) -> None:
        self._stack: list[_SwitchContext] = []

    @property
    def state(self) -> SwitchState:
        return self._stack[-1].state if self._stack else "outside_switch"

    @property
    def body_depth(self) -> int | None:
        return self._stack[-1].body_depth if self._stack else None

    def open(self, switch_token: Token | None, body_depth: int) -> None:
        context = _SwitchContext(switch_token=switch_token, body_depth=body_depth)
        context.state = _switch_transition(context.state, "open")
        self._stack.append(context)

    def close(self, close_token: Token) -> list[TrackerEvent]:
        if not self._stack:
            return []
        context = self._stack.pop()
        events = _end_case(context)
        context.state = _switch_transition(context.state, "close")
        events.append(
            SwitchClosed(
                switch_token=context.switch_token,
                has_default=context.has_default,
                close_token=close_token,
            )
        )
        return events

    def observe_comment(self, token: Token, *, case_level: bool) -> None:
        context = self._stack[-1] if self._stack else None
        if context is None or context.state != "in_case" or not case_level:
            return
        if FALLTHROUGH_RE.search(token.text):
            context.fallthrough_marked = True

    def mark_terminated(self) -> None:
        """Record that every branch of the statement just closed ends the case."""
        context = self._stack[-1] if self._stack else None
        if context is None or context.state != "in_case" or context.label_pending:
            return
        context.terminating = False
        context.terminated = True
        context.terminator = None

    def observe(
        self,
        token: Token,
        *,
        case_level: bool,
        label_level: bool,
        paren_depth: int,
    ) -> list[TrackerEvent]:
        context = self._stack[-1] if self._stack else None
        if context is None:
            return []
        text = token.text

        if label_level and paren_depth == 0 and token.kind == "keyword" and text in {
            "case",
            "default",
        }:
            events = _end_case(context)
            context.state = _switch_transition(context.state, "label")
            context.case_token = token
            context.label_pending = True
            context.has_statement = False
            context.first_statement = None
            context.terminator = None
            context.terminating = False
            context.terminated = False
            context.fallthrough_marked = False
            if text == "default":
                context.has_default = True
            return events

        if context.state != "in_case":
            return []
        if context.label_pending:
            if text == ":" and paren_depth == 0:
                context.label_pending = False
            return []
        if not case_level:
            return []

        if token.kind == "identifier" and text == "fallthrough":
            context.fallthrough_marked = True
            return []
        if text in {";", ")", "]", "}"}:
            if text == ";" and context.terminating:
                context.terminating = False
                context.terminated = True
            return []

        context.fallthrough_marked = False
        if context.terminated:
            context.terminated = False
            context.terminator = None
        context.has_statement = True
        if context.first_statement is None:
            context.first_statement = token
        if token.kind == "keyword" and text in TERMINATORS:
            context.terminating = True
            context.terminator = token
        return []


def _switch_transition(state: SwitchState, event: str) -> SwitchState:
    return _SWITCH_TRANSITIONS.get((state, event), state)


def _end_case(context: _SwitchContext) -> list[TrackerEvent]:
    if context.state != "in_case" or context.case_token is None:
        return []
    if context.terminated:
        return [
            CaseTerminated(
                case_token=context.case_token,
                first_statement=context.first_statement,
                terminator=context.terminator,
            )
        ]
    if context.has_statement and not context.fallthrough_marked:
        return [FallthroughCandidate(case_token=context.case_token)]
    return []


@dataclass(slots=True)
class _ParenFrame:
    open_token: Token
    opener: Token | None = None
    clause: int = 0
    do_while: bool = False
    declarator: bool = False


@dataclass(slots=True)
class _FunctionCapture:
    name_token: Token
    identifier_class: IdentifierClass
    return_tokens: list[str]
    params: list[Token] = field(default_factory=list)
    paren_level: int = 0
    opened: bool = False
    closed: bool = False


@dataclass(slots=True)
class _Flow:
    """Whether the statements of one scope end in a jump."""

    ends: bool = False
    terminating: bool = False
    branch: bool = False
    chain: bool = False


@dataclass(slots=True)
class _SavedStatement:
    tokens: list[Token]
    declaring: bool
    declaring_depth: int


class StructuralTracker:
    """Single forward pass over the tokens of one file.

    ``feed`` must see every token in order. It returns None for whitespace
    and newlines and a ``ContextSnapshot`` for everything else. Nothing is
    shared between tracker instances.
    """

    def __init__(self, *, role: str = "source") -> None:
        self._frames: tuple[ScopeFrame, ...] = ()
        self._saved: list[_SavedStatement | None] = []
        self._flows: list[_Flow] = [_Flow()]
        self._parens: list[_ParenFrame] = []
        self._statement: list[Token] = []
        self._declaring = False
        self._declaring_depth = 0
        self._pending: tuple[ConstructKind, Token] | None = None
        self._do_while_next = False
        self._last_closed: ScopeFrame | None = None
        self._last_tokens: tuple[Token, ...] = ()
        self._file_symbols: dict[str, Signedness] = {}
        self._pending_params: dict[str, Signedness] = {}
        self._capture: _FunctionCapture | None = None
        self._functions: list[FunctionDecl] = []
        self._includes: list[IncludeDirective] = []
        self._switches = SwitchCaseTracker()
        self._guard = HeaderGuardTracker() if role == "header" else None

    def feed(self, token: Token, next_token: Token | None = None) -> ContextSnapshot | None:
        kind = token.kind
        if kind in {"whitespace", "newline"}:
            return None
        if kind == "directive":
            self._on_directive(token)
            return self._snapshot(token)
        if kind == "comment":
            self._switches.observe_comment(token, case_level=self._case_level())
            return self._snapshot(token)
        if kind == "lex_error":
            return self._snapshot(token)

        if self._guard is not None:
            self._guard.feed_code()

        pending = self._pending
        self._pending = None
        self._capture_param(token)
        self._track_flow(token)

        text = token.text
        events: list[TrackerEvent] = []
        identifier_class: IdentifierClass | None = None
        declaration = False
        loop_condition = False

        if kind == "identifier":
            identifier_class, declaration = self._on_identifier(token, next_token)
        elif text == "{":
            events.extend(self._open_brace(token, pending))
        elif text == "}":
            events.extend(self._close_brace(token))
        elif text == "(":
            self._open_paren(token)
        elif text == ")":
            events.extend(self._close_paren(token))
        elif text == ";":
            self._on_semicolon()
        elif kind == "keyword":
            self._on_keyword(token)
        elif token.is_number:
            loop_condition = self._in_loop_condition()

        opens_switch = (
            text == "{"
            and bool(events)
            and isinstance(events[0], ScopeOpened)
            and events[0].frame.kind == "switch"
        )
        if not opens_switch:
            events.extend(
                self._switches.observe(
                    token,
                    case_level=self._case_level(),
                    label_level=self._label_level(),
                    paren_depth=len(self._parens),
                )
            )

        if text not in {";", "{", "}"} or (text == ";" and self._parens):
            self._statement.append(token)
            if len(self._statement) > _MAX_STATEMENT_TOKENS:
                del self._statement[0]

        snapshot = self._snapshot(
            token,
            identifier_class=identifier_class,
            declaration=declaration,
            loop_condition=loop_condition,
            events=tuple(events),
        )
        self._last_tokens = (*self._last_tokens[-2:], token)
        return snapshot

    def finish(self) -> TrackerOutcome:
        return TrackerOutcome(
            guard_problem=self._guard.finish() if self._guard is not None else None,
            functions=tuple(self._functions),
            includes=tuple(self._includes),
        )

    def _snapshot(
        self,
        token: Token,
        *,
        identifier_class: IdentifierClass | None = None,
        declaration: bool = False,
        loop_condition: bool = False,
        events: tuple[TrackerEvent, ...] = (),
    ) -> ContextSnapshot:
        return ContextSnapshot(
            token=token,
            frames=self._frames,
            paren_depth=len(self._parens),
            switch_state=self._switches.state,
            identifier_class=identifier_class,
            is_declaration=declaration,
            loop_condition=loop_condition,
            last_tokens=self._last_tokens,
            file_symbols=self._file_symbols,
            events=events,
        )

    def _at_file_scope(self) -> bool:
        return not self._parens and all(frame.kind == "extern" for frame in self._frames)

    def _in_function_body(self) -> bool:
        return any(frame.kind == "function" for frame in self._frames)

    def _case_level(self) -> bool:
        body_depth = self._switches.body_depth
        if body_depth is None or len(self._frames) < body_depth:
            return False
        return all(frame.kind == "block" for frame in self._frames[body_depth:])

    def _label_level(self) -> bool:
        return self._switches.body_depth == len(self._frames)

    def _on_directive(self, token: Token) -> None:
        name, argument = directive_parts(token)
        if name == "include" and argument:
            quoted = argument.startswith('"')
            target = argument.strip('"<> \t')
            self._includes.append(IncludeDirective(target=target, quoted=quoted, token=token))
        if self._guard is not None:
            self._guard.feed_directive(name, argument)

    def _on_identifier(
        self, token: Token, next_token: Token | None
    ) -> tuple[IdentifierClass, bool]:
        continues = (
            self._declaring
            and bool(self._statement)
            and self._statement[-1].text == ","
            and len(self._parens) == self._declaring_depth
        )
        site = IdentifierSite(
            token=token,
            previous=tuple(self._statement),
            next_token=next_token,
            paren_depth=len(self._parens),
            at_file_scope=self._at_file_scope(),
            in_function_body=self._in_function_body(),
            continues_declaration=continues,
        )
        identifier_class = classify_identifier(site)
        declaration = is_declaration_site(site)
        if declaration:
            self._record_declaration(token, next_token, identifier_class)
        return (identifier_class, declaration)

    def _record_declaration(
        self, token: Token, next_token: Token | None, identifier_class: IdentifierClass
    ) -> None:
        next_text = next_token.text if next_token is not None else ""
        if next_text == "(":
            if identifier_class in {"public_function", "private_function"}:
                self._capture = _FunctionCapture(
                    name_token=token,
                    identifier_class=identifier_class,
                    return_tokens=[
                        item.text
                        for item in self._statement
                        if item.text not in STORAGE_KEYWORDS
                    ],
                )
            return

        if next_text in DECLARATOR_END:
            self._declaring = True
            self._declaring_depth = len(self._parens)

        type_tokens = self._declared_type_tokens()
        pointer = any(item.text == "*" for item in type_tokens)
        signedness = None if pointer else _signedness(type_tokens)

        if self._parens and self._parens[-1].declarator:
            if signedness is not None:
                self._pending_params[token.text] = signedness
            return

        innermost = self._frames[-1] if self._frames else None
        if innermost is not None and innermost.kind == "struct" and not self._parens:
            member = StructMember(
                name=token.text,
                type_text=" ".join(
                    item.text for item in type_tokens if item.text not in {"const", "volatile"}
                ),
                token=token,
                pointer=pointer,
                array=next_text == "[",
            )
            self._replace_innermost(replace(innermost, members=(*innermost.members, member)))
            return

        if signedness is None:
            return
        if innermost is not None and innermost.kind != "extern":
            symbols = dict(innermost.symbols)
            symbols[token.text] = signedness
            self._replace_innermost(replace(innermost, symbols=symbols))
        else:
            self._file_symbols = {**self._file_symbols, token.text: signedness}

    def _declared_type_tokens(self) -> list[Token]:
        region: list[Token] = []
        for item in reversed(self._statement):
            if item.text in {"(", ",", ";"}:
                break
            region.append(item)
        region.reverse()
        if not any(item.kind in {"keyword", "identifier"} for item in region):
            region = list(self._statement)
        return [item for item in region if item.text not in STORAGE_KEYWORDS]

    def _replace_innermost(self, frame: ScopeFrame) -> None:
        self._frames = (*self._frames[:-1], frame)

    def _capture_param(self, token: Token) -> None:
        capture = self._capture
        if capture is None or not capture.opened or capture.closed:
            return
        depth = len(self._parens)
        if depth < capture.paren_level:
            return
        if token.text == ")" and depth == capture.paren_level:
            return
        capture.params.append(token)

    def _open_brace(
        self, token: Token, pending: tuple[ConstructKind, Token] | None
    ) -> list[TrackerEvent]:
        previous = self._last_tokens[-1] if self._last_tokens else None
        previous_text = previous.text if previous is not None else ""
        statement_texts = {item.text for item in self._statement}
        innermost = self._frames[-1] if self._frames else None
        keyword_token: Token | None = None
        name: str | None = None
        symbols: dict[str, Signedness] = {}

        if pending is not None:
            kind, keyword_token = pending
        elif self._capture is not None and self._capture.closed:
            kind = "function"
            name = self._capture.name_token.text
            self._record_function(is_definition=True)
        elif previous_text == ")" and self._at_file_scope():
            kind = "function"
            self._capture = None
        elif previous_text == "=" or (
            previous_text in {",", "{"}
            and innermost is not None
            and innermost.kind == "initializer"
        ):
            kind = "initializer"
        elif statement_texts.intersection(AGGREGATE_KEYWORDS) and previous_text != ")":
            keyword_token = next(
                item for item in reversed(self._statement) if item.text in AGGREGATE_KEYWORDS
            )
            kind = "enum" if keyword_token.text == "enum" else "struct"
            if previous is not None and previous.kind == "identifier":
                name = previous.text
        elif previous is not None and previous.is_quoted and "extern" in statement_texts:
            kind = "extern"
        else:
            kind = "block"

        if kind == "function":
            symbols = dict(self._pending_params)
            self._pending_params = {}

        frame = ScopeFrame(
            kind=kind,
            open_token=token,
            keyword_token=keyword_token,
            name=name,
            symbols=symbols,
        )
        if kind in {"struct", "enum", "initializer"}:
            self._saved.append(
                _SavedStatement(
                    tokens=list(self._statement),
                    declaring=self._declaring,
                    declaring_depth=self._declaring_depth,
                )
            )
        else:
            self._saved.append(None)
        self._frames = (*self._frames, frame)
        self._statement = []
        self._flows.append(_Flow())
        self._declaring = False

        if kind == "switch":
            self._switches.open(keyword_token, body_depth=len(self._frames))
        return [ScopeOpened(frame=frame)]

    def _close_brace(self, token: Token) -> list[TrackerEvent]:
        if not self._frames:
            self._statement = []
            self._declaring = False
            return []
        frame = self._frames[-1]
        events: list[TrackerEvent] = []
        if frame.kind == "switch" and self._switches.body_depth == len(self._frames):
            events.extend(self._switches.close(token))
        self._frames = self._frames[:-1]
        saved = self._saved.pop() if self._saved else None
        self._last_closed = frame
        events.append(ScopeClosed(frame=frame, close_token=token))
        self._close_flow(frame.kind)

        if saved is not None:
            self._statement = [*saved.tokens, token]
            self._declaring = saved.declaring
            self._declaring_depth = saved.declaring_depth
        else:
            self._statement = []
            self._declaring = False
        return events

    def _track_flow(self, token: Token) -> None:
        flow = self._flows[-1]
        text = token.text
        if token.kind == "keyword" and text in TERMINATORS:
            flow.terminating = True
            return
        if text == ";" and not self._parens and flow.terminating:
            flow.terminating = False
            flow.ends = True
            return
        if text in {";", ")", "]", "}"} or flow.terminating:
            return
        previous = self._last_tokens[-1].text if self._last_tokens else ""
        if token.kind == "keyword" and text == "if" and previous != "else":
            flow.chain = True
        elif token.kind == "keyword" and text == "else":
            # a braced if branch reports through ``branch``, a bare one through ``ends``
            flow.chain = flow.chain and (flow.branch if previous == "}" else flow.ends)
        flow.ends = False

    def _close_flow(self, kind: ConstructKind) -> None:
        if len(self._flows) < 2:
            return
        child = self._flows.pop()
        parent = self._flows[-1]
        if kind == "if":
            parent.branch = child.ends
        elif kind == "else":
            parent.ends = parent.chain and child.ends
            parent.chain = False
            if parent.ends and self._case_level():
                self._switches.mark_terminated()
        elif kind == "block":
            parent.ends = child.ends

    def _open_paren(self, token: Token) -> None:
        previous = self._last_tokens[-1] if self._last_tokens else None
        frame = _ParenFrame(open_token=token)
        if previous is not None and previous.kind in {"keyword", "identifier"}:
            frame.opener = previous
            if previous.text == "while" and self._do_while_next:
                frame.do_while = True
        capture = self._capture
        if (
            capture is not None
            and not capture.opened
            and previous is not None
            and previous is capture.name_token
        ):
            frame.declarator = True
            capture.opened = True
            capture.paren_level = len(self._parens) + 1
        self._parens.append(frame)
        self._do_while_next = False

    def _close_paren(self, token: Token) -> list[TrackerEvent]:
        if not self._parens:
            return []
        frame = self._parens.pop()
        if frame.declarator and self._capture is not None:
            self._capture.closed = True
        opener = frame.opener
        if opener is None or opener.kind != "keyword" or opener.text not in CONTROL_KEYWORDS:
            return []
        if not frame.do_while:
            self._pending = (CONTROL_KEYWORDS[opener.text], opener)
        return [HeaderClosed(keyword=opener, close_token=token, do_while=frame.do_while)]

    def _on_semicolon(self) -> None:
        if self._parens:
            top = self._parens[-1]
            if top.opener is not None and top.opener.text == "for":
                top.clause += 1
            self._declaring = False
            return
        if self._capture is not None and self._capture.closed:
            self._record_function(is_definition=False)
        self._capture = None
        self._pending_params = {}
        self._statement = []
        self._declaring = False

    def _on_keyword(self, token: Token) -> None:
        text = token.text
        if text == "else":
            self._pending = ("else", token)
        elif text == "do":
            self._pending = ("loop", token)
        elif text == "while":
            last = self._last_closed
            previous = self._last_tokens[-1] if self._last_tokens else None
            self._do_while_next = (
                previous is not None
                and previous.text == "}"
                and last is not None
                and last.keyword_token is not None
                and last.keyword_token.text == "do"
            )

    def _in_loop_condition(self) -> bool:
        for frame in reversed(self._parens):
            opener = frame.opener
            if opener is None:
                continue
            if opener.kind != "keyword":
                return False
            if opener.text == "while":
                return True
            if opener.text == "for":
                return frame.clause == 1
            return False
        return False

    def _record_function(self, *, is_definition: bool) -> None:
        capture = self._capture
        if capture is None:
            return
        self._functions.append(
            FunctionDecl(
                name=capture.name_token.text,
                identifier_class=capture.identifier_class,
                signature=normalize_signature(capture.return_tokens, capture.params),
                token=capture.name_token,
                is_definition=is_definition,
            )
        )
        self._capture = None


def lookahead(tokens: Sequence[Token]) -> list[Token | None]:
    """Map each token index to the next structural token after it."""
    result: list[Token | None] = [None] * len(tokens)
    upcoming: Token | None = None
    for index in range(len(tokens) - 1, -1, -1):
        result[index] = upcoming
        if tokens[index].is_significant:
            upcoming = tokens[index]
    return result


def normalize_signature(return_tokens: Sequence[str], params: Sequence[Token]) -> str:
    """Render a declaration as ``ret(type, type)`` with parameter names dropped."""
    groups: list[list[Token]] = [[]]
    depth = 0
    for token in params:
        if token.text == "(":
            depth += 1
        elif token.text == ")":
            depth -= 1
        if token.text == "," and depth == 0:
            groups.append([])
            continue
        groups[-1].append(token)

    rendered: list[str] = []
    for group in groups:
        if not group:
            continue
        rendered.append(" ".join(item.text for item in _drop_parameter_name(group)))
    if rendered == ["void"]:
        rendered = []
    return f"{' '.join(return_tokens)}({', '.join(rendered)})"


def _drop_parameter_name(group: list[Token]) -> list[Token]:
    if len(group) < 2:
        return group
    for index in range(len(group) - 1, 0, -1):
        token = group[index]
        if token.kind != "identifier":
            continue
        following = group[index + 1].text if index + 1 < len(group) else None
        before = group[index - 1]
        if following not in {None, "["}:
            return group
        if before.text in AGGREGATE_KEYWORDS:
            return group
        if before.kind in {"identifier", "keyword"} or before.text == "*":
            if any(_is_type_specifier(item) for item in group[:index]):
                return group[:index] + group[index + 1 :]
        return group
    return group


def _is_type_specifier(token: Token) -> bool:
    if token.kind == "identifier":
        return True
    return token.kind == "keyword" and token.text not in TYPE_QUALIFIERS


def _signedness(type_tokens: Sequence[Token]) -> Signedness | None:
    texts = {token.text for token in type_tokens}
    if texts.intersection(UNSIGNED_TYPES):
        return "unsigned"
    if texts.intersection(SIGNED_TYPES):
        return "signed"
    return None
