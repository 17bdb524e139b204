"""Preprocessor and file-layout rule tests."""

from __future__ import annotations

from tests.helpers import check_text

TEMPLATE_HEADER = (
    "/**\n"
    " * @file uart.h\n"
    " * @brief UART driver interface.\n"
    " */\n"
    "#ifndef UART_H\n"
    "#define UART_H\n"
    "\n"
    "#ifdef __cplusplus\n"
    'extern "C" {\n'
    "#endif\n"
    "\n"
    "void Uart_Init(void);\n"
    "\n"
    "#ifdef __cplusplus\n"
    '} // extern "C"\n'
    "#endif\n"
    "\n"
    "#endif // UART_H\n"
)


def test_guarded_header_passes() -> None:
    text = "#ifndef FOO_H\n#define FOO_H\nint Foo_Get(void);\n#endif // FOO_H\n"

    assert check_text(text, "missing-guard", path="foo.h") == []
    assert check_text(TEMPLATE_HEADER, "missing-guard", path="uart.h") == []


def test_missing_endif_is_one_error_at_end_of_file() -> None:
    text = "#ifndef FOO_H\n#define FOO_H\nint Foo_Get(void);\n"

    violations = check_text(text, "missing-guard", path="foo.h")

    assert [(item.line, item.column, item.severity) for item in violations] == [(3, 1, "error")]
    assert violations[0].message == "Include guard '#ifndef FOO_H' has no closing '#endif'."


def test_unguarded_header_and_mismatched_guard_are_flagged() -> None:
    unguarded = check_text("int Foo_Get(void);\n", "missing-guard", path="foo.h")
    mismatched = check_text(
        "#ifndef FOO_H\n#define FOO_HH\n#endif // FOO_H\n", "missing-guard", path="foo.h"
    )

    assert len(unguarded) == 1
    assert len(mismatched) == 1
    assert mismatched[0].message.startswith("Guard macro mismatch")


def test_sources_are_never_guard_checked() -> None:
    assert check_text("int Foo_Get(void);\n", "missing-guard", path="foo.c") == []


def test_endif_needs_trailing_comment() -> None:
    bare = check_text("#ifdef DEBUG\n#endif\n", "endif-comment")

    assert [(item.line, item.column) for item in bare] == [(2, 1)]
    assert check_text("#ifdef DEBUG\n#endif // DEBUG\n", "endif-comment") == []
    assert check_text("#ifdef DEBUG\n#endif /* DEBUG */\n", "endif-comment") == []


def test_header_prototypes_need_extern_c_block() -> None:
    bare = "#ifndef FOO_H\n#define FOO_H\nint Foo_Get(void);\n#endif // FOO_H\n"

    violations = check_text(bare, "extern-c-guard", path="foo.h")

    assert [(item.line, item.column) for item in violations] == [(3, 5)]
    assert check_text(TEMPLATE_HEADER, "extern-c-guard", path="uart.h") == []
    assert check_text("int Foo_Get(void);\n", "extern-c-guard", path="foo.c") == []


def test_file_header_is_opt_in() -> None:
    assert check_text("int x;\n", path="uart.c") == []

    missing = check_text("int x;\n", "file-header", path="uart.c")
    assert [(item.line, item.column) for item in missing] == [(1, 1)]


def test_file_header_names_the_file_and_carries_a_brief() -> None:
    good = "/**\n * @file uart.c\n * @brief UART driver.\n */\nint x;\n"
    wrong_name = "/**\n * @file serial.c\n * @brief UART driver.\n */\nint x;\n"
    no_brief = "/**\n * @file uart.c\n */\nint x;\n"

    assert check_text(good, "file-header", path="uart.c") == []
    assert check_text(TEMPLATE_HEADER, "file-header", path="uart.h") == []
    assert [item.message for item in check_text(wrong_name, "file-header", path="uart.c")] == [
        "File header names 'serial.c' but the file is 'uart.c'."
    ]
    assert [item.message for item in check_text(no_brief, "file-header", path="uart.c")] == [
        "File header has no '@brief' description."
    ]
