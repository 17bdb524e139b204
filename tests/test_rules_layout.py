"""Layout rule tests: widths, whitespace, braces and operator spacing."""

from __future__ import annotations

from tests.helpers import check_text, lines_of


def _in_function(body: str) -> str:
    return "void F(void)\n{\n" + body + "}\n"


def test_line_width_flags_column_after_limit() -> None:
    text = "// " + "x" * 78 + "\n"

    violations = check_text(text, "line-width")

    assert [(item.line, item.column) for item in violations] == [(1, 81)]
    assert violations[0].message == "Line is 81 bytes long; maximum is 80."
    assert check_text(text, "line-width", max_line_width=100) == []


def test_line_width_counts_bytes_not_characters() -> None:
    text = "// " + "é" * 40 + "\n"

    assert lines_of(check_text(text, "line-width"), "line-width") == [1]


def test_tab_forbidden_outside_literals_only() -> None:
    indented = check_text("int main(void)\n{\n\treturn 0;\n}\n", "tab-forbidden")
    in_string = check_text('const char *s = "a\tb";\n', "tab-forbidden")
    in_directive_string = check_text('#define SEP "\t"\n', "tab-forbidden")
    in_directive = check_text("#define\tX 1\n", "tab-forbidden")

    assert [(item.line, item.column) for item in indented] == [(3, 1)]
    assert indented[0].severity == "error"
    assert in_string == []
    assert in_directive_string == []
    assert [(item.line, item.column) for item in in_directive] == [(1, 8)]


def test_trailing_whitespace_reports_first_blank_column() -> None:
    violations = check_text("int x;   \nint y;\n", "trailing-whitespace")

    assert [(item.line, item.column) for item in violations] == [(1, 7)]


def test_indent_width_checks_statement_starts() -> None:
    text = _in_function("   x = 1;\n    y = 2;\n")

    assert lines_of(check_text(text, "indent-width"), "indent-width") == [3]
    assert check_text(text, "indent-width", indent_width=3) != []
    assert check_text(_in_function("    x = 1;\n"), "indent-width", indent_width=2) == []


def test_function_brace_must_be_on_its_own_line() -> None:
    violations = check_text("void Foo_Init(void) {\n}\n", "brace-placement")

    assert [(item.line, item.column) for item in violations] == [(1, 21)]
    assert "must be on its own line" in violations[0].message


def test_closing_brace_must_align_with_opening_brace() -> None:
    misaligned = check_text("void Foo_Init(void)\n{\n  }\n", "brace-placement")

    assert [(item.line, item.column) for item in misaligned] == [(3, 3)]
    assert check_text("void Foo_Init(void)\n{\n}\n", "brace-placement") == []


def test_struct_braces_are_not_placement_checked() -> None:
    text = "typedef struct {\n    int x;\n} sPoint_t;\n"

    assert check_text(text, "brace-placement") == []


def test_binary_operator_needs_blanks_on_both_sides() -> None:
    violations = check_text(_in_function("    a=b;\n"), "space-around-operator")

    assert [(item.line, item.column) for item in violations] == [(3, 6)]
    assert violations[0].message == "Operator '=' must have one blank on each side."


def test_member_access_and_subscripts_are_tight() -> None:
    arrow = check_text(_in_function("    x = p -> next;\n"), "space-around-operator")
    subscript = check_text(_in_function("    y = a[ i ];\n"), "space-around-operator")
    call = check_text(_in_function("    foo (x);\n"), "space-around-operator")

    assert [item.message for item in arrow] == ["No blank allowed around '->'."]
    assert len(subscript) == 2
    assert [item.message for item in call] == ["No blank allowed between 'foo' and '('."]


def test_unary_operators_and_designators_are_not_flagged() -> None:
    body = (
        "    x = -1;\n"
        "    s.field = a - 1;\n"
        "    sPoint_t p = { .x = 1 };\n"
        "    if (x)\n    {\n    }\n"
    )

    assert check_text(_in_function(body), "space-around-operator") == []


def test_sign_after_a_cast_is_unary() -> None:
    casts = "    y = (int)-x;\n    z = (const uint8_t *)+p;\n    return (long)-1;\n"
    binaries = "    w = f(a)-b;\n    n = sizeof(int)-1;\n    m = (a)-b;\n"

    assert check_text(_in_function(casts), "space-around-operator") == []
    violations = check_text(_in_function(binaries), "space-around-operator")
    assert [(item.line, item.message) for item in violations] == [
        (3, "Operator '-' must have one blank on each side."),
        (4, "Operator '-' must have one blank on each side."),
        (5, "Operator '-' must have one blank on each side."),
    ]


def test_keyword_needs_exactly_one_blank_before_paren() -> None:
    tight = check_text(_in_function("    if(x)\n    {\n    }\n"), "keyword-spacing")
    wide = check_text(_in_function("    while  (x)\n    {\n    }\n"), "keyword-spacing")
    good = check_text(_in_function("    for (;;)\n    {\n    }\n"), "keyword-spacing")

    assert [(item.line, item.column) for item in tight] == [(3, 5)]
    assert len(wide) == 1
    assert good == []


def test_comma_spacing() -> None:
    missing_after = check_text(_in_function("    f(a,b);\n"), "comma-spacing")
    blank_before = check_text(_in_function("    f(a , b);\n"), "comma-spacing")

    assert [item.message for item in missing_after] == ["Expected a blank after ','."]
    assert [item.message for item in blank_before] == ["No blank allowed before ','."]
    assert check_text(_in_function("    f(a, b);\n"), "comma-spacing") == []


def test_lex_errors_are_reported_as_errors() -> None:
    violations = check_text('char *s = "abc;\n', "lex-error")

    assert [(item.line, item.column, item.severity) for item in violations] == [(1, 11, "error")]
    assert violations[0].message == "Unterminated string literal."
