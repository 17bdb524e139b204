"""Type and declaration rules."""

from __future__ import annotations

from cstyle.rules.base import TokenRule, TokenWindow, Violation
from cstyle.tracker import ContextSnapshot, ScopeClosed, StructMember

MIXABLE_OPERATORS = frozenset(
    {"+", "-", "*", "/", "%", "<", ">", "<=", ">=", "==", "!=", "&", "|", "^"}
)
MEMBER_ACCESS = frozenset({".", "->"})
POSTFIX_OPENERS = frozenset({"(", "[", ".", "->"})

TYPE_SIZES = {
    "char": 1,
    "_Bool": 1,
    "bool": 1,
    "int8_t": 1,
    "uint8_t": 1,
    "short": 2,
    "int16_t": 2,
    "uint16_t": 2,
    "int": 4,
    "long": 4,
    "float": 4,
    "int32_t": 4,
    "uint32_t": 4,
    "double": 8,
    "int64_t": 8,
    "uint64_t": 8,
}


class SignedUnsignedMixRule(TokenRule):
    """Binary expressions do not mix operands of differing declared signedness."""

    rule_id = "signed-unsigned-mix"
    category = "types"
    severity = "warning"
    token_kinds = frozenset({"punctuator"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        if window.token.text not in MIXABLE_OPERATORS or not context.in_function_body:
            return []
        left = window.previous_significant()
        right = window.next_significant()
        if left is None or right is None:
            return []
        if left.kind != "identifier" or right.kind != "identifier":
            return []
        before_left = window.previous_significant(2)
        after_right = window.next_significant(2)
        if before_left is not None and before_left.text in MEMBER_ACCESS:
            return []
        if after_right is not None and after_right.text in POSTFIX_OPENERS:
            return []

        left_sign = context.signedness(left.text)
        right_sign = context.signedness(right.text)
        if left_sign is None or right_sign is None or left_sign == right_sign:
            return []
        return [
            self.at_token(
                window.view.path,
                window.token,
                f"Operands '{left.text}' ({left_sign}) and '{right.text}' ({right_sign}) "
                "differ in signedness.",
            )
        ]


class StructPackingRule(TokenRule):
    """Struct members are declared in order of non-increasing size."""

    rule_id = "struct-packing"
    category = "types"
    severity = "warning"
    token_kinds = frozenset({"punctuator"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        violations: list[Violation] = []
        for event in context.events:
            if not isinstance(event, ScopeClosed) or event.frame.kind != "struct":
                continue
            previous_size: int | None = None
            for member in event.frame.members:
                size = member_size(member)
                if size is None:
                    continue
                if previous_size is not None and size > previous_size:
                    violations.append(
                        self.at_token(
                            window.view.path,
                            member.token,
                            f"Member '{member.name}' ({size} bytes) follows a smaller member "
                            f"({previous_size} bytes); order members by decreasing size.",
                        )
                    )
                previous_size = size
        return violations


class EmptyParameterListRule(TokenRule):
    """Functions taking no arguments declare '(void)' rather than '()'."""

    rule_id = "empty-parameter-list"
    category = "types"
    severity = "warning"
    token_kinds = frozenset({"identifier"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        if not context.is_declaration or context.identifier_class not in {
            "public_function",
            "private_function",
        }:
            return []
        opening = window.next_significant()
        closing = window.next_significant(2)
        if opening is None or closing is None or opening.text != "(" or closing.text != ")":
            return []
        name = window.token.text
        return [
            self.at_token(
                window.view.path,
                window.token,
                f"Function '{name}' declares an empty parameter list; write '{name}(void)'.",
            )
        ]


def member_size(member: StructMember) -> int | None:
    """Best-effort size in bytes of a member's declared type, None when unknown."""
    if member.pointer:
        return None
    words = member.type_text.split()
    if words.count("long") >= 2:
        return 8
    for word in reversed(words):
        if word in TYPE_SIZES:
            return TYPE_SIZES[word]
    if words and words[-1] in {"signed", "unsigned"}:
        return 4
    return None
