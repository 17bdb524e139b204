"""Type and declaration rule tests."""

from __future__ import annotations

from cstyle.lexer import Token
from cstyle.rules.declarations import member_size
from cstyle.tracker import StructMember
from tests.helpers import check_text


def _in_function(body: str) -> str:
    return "void F(void)\n{\n" + body + "}\n"


def test_mixing_signed_and_unsigned_operands_is_flagged() -> None:
    text = _in_function(
        "    uint8_t count = 0;\n"
        "    int32_t delta = 0;\n"
        "    if (count > delta)\n"
        "    {\n"
        "    }\n"
    )

    violations = check_text(text, "signed-unsigned-mix")

    assert [(item.line, item.column) for item in violations] == [(5, 15)]
    assert violations[0].message == (
        "Operands 'count' (unsigned) and 'delta' (signed) differ in signedness."
    )


def test_same_signedness_and_unknown_types_are_not_flagged() -> None:
    text = _in_function(
        "    uint8_t a = 0;\n"
        "    uint16_t b = 0;\n"
        "    sPoint_t p;\n"
        "    int32_t c = 0;\n"
        "    a = a + b;\n"
        "    c = p - c;\n"
    )

    assert check_text(text, "signed-unsigned-mix") == []


def test_parameters_take_part_in_signedness_checks() -> None:
    text = (
        "static int16_t scale(uint32_t total, int16_t step)\n"
        "{\n"
        "    return total / step;\n"
        "}\n"
    )

    assert len(check_text(text, "signed-unsigned-mix")) == 1


def test_struct_members_must_not_grow_in_size() -> None:
    bad = "typedef struct\n{\n    uint8_t flag;\n    uint32_t count;\n} sBad_t;\n"
    good = (
        "typedef struct\n{\n    uint32_t count;\n    uint16_t id;\n    uint8_t flag;\n} sGood_t;\n"
    )

    violations = check_text(bad, "struct-packing")

    assert [(item.line, item.column) for item in violations] == [(4, 14)]
    assert "'count' (4 bytes)" in violations[0].message
    assert check_text(good, "struct-packing") == []


def test_member_size_skips_pointers_and_unknown_types() -> None:
    token = Token(kind="identifier", text="m", line=1, column=1, offset=0)

    assert member_size(StructMember("m", "uint16_t", token)) == 2
    assert member_size(StructMember("m", "unsigned long long", token)) == 8
    assert member_size(StructMember("m", "unsigned", token)) == 4
    assert member_size(StructMember("m", "char", token, pointer=True)) is None
    assert member_size(StructMember("m", "sPoint_t", token)) is None


def test_empty_parameter_list_requires_void() -> None:
    violations = check_text("void Foo_Run();\n", "empty-parameter-list")

    assert [(item.line, item.column) for item in violations] == [(1, 6)]
    assert violations[0].message == (
        "Function 'Foo_Run' declares an empty parameter list; write 'Foo_Run(void)'."
    )
    assert check_text("void Foo_Run(void);\n", "empty-parameter-list") == []
    assert check_text(_in_function("    Foo_Run();\n"), "empty-parameter-list") == []
