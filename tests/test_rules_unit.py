"""Header/source correspondence rule tests."""

from __future__ import annotations

from tests.helpers import check_pair, check_text, lines_of

UNIT_RULES = ("header-source-correspondence", "prototype-mismatch", "missing-prototype")

HEADER = (
    "#ifndef UART_H\n"
    "#define UART_H\n"
    "void Uart_Init(void);\n"
    "uint8_t Uart_Read(uint8_t *buffer, uint16_t length);\n"
    "#endif // UART_H\n"
)

SOURCE = (
    '#include "uart.h"\n'
    "\n"
    "static void resetFifo(void)\n"
    "{\n"
    "}\n"
    "\n"
    "void Uart_Init(void)\n"
    "{\n"
    "    resetFifo();\n"
    "}\n"
    "\n"
    "uint8_t Uart_Read(uint8_t *buffer, uint16_t length)\n"
    "{\n"
    "    return 0;\n"
    "}\n"
)


def test_matching_unit_passes() -> None:
    assert check_pair(HEADER, SOURCE, *UNIT_RULES) == []


def test_source_must_include_its_header() -> None:
    source = SOURCE.replace('#include "uart.h"\n', '#include "serial.h"\n')

    violations = check_pair(HEADER, source, *UNIT_RULES)

    assert [(item.rule_id, item.file, item.line, item.column) for item in violations] == [
        ("header-source-correspondence", "uart.c", 1, 1)
    ]
    assert violations[0].message == "Source does not include its own header 'uart.h'."


def test_source_and_header_must_share_a_stem() -> None:
    violations = check_pair(HEADER, SOURCE, "header-source-correspondence", source_path="serial.c")

    assert len(violations) == 1
    assert "does not share the stem" in violations[0].message


def test_definition_must_match_prototype_signature() -> None:
    source = SOURCE.replace(
        "uint8_t Uart_Read(uint8_t *buffer, uint16_t length)\n",
        "uint8_t Uart_Read(uint8_t *buffer, uint32_t length)\n",
    )

    violations = check_pair(HEADER, source, *UNIT_RULES)

    assert lines_of(violations, "prototype-mismatch") == [12]
    assert violations[0].severity == "error"
    assert violations[0].message == (
        "Definition of 'Uart_Read' is 'uint8_t(uint8_t *, uint32_t)' but uart.h declares "
        "'uint8_t(uint8_t *, uint16_t)'."
    )


def test_unnamed_prototype_parameters_keep_their_type() -> None:
    header = (
        "#ifndef UART_H\n"
        "#define UART_H\n"
        "void Uart_Set(const uint8_t);\n"
        "void Uart_Take(struct cfg);\n"
        "void Uart_Mode(enum eMode);\n"
        "void Uart_Count(unsigned);\n"
        "#endif // UART_H\n"
    )
    source = (
        '#include "uart.h"\n'
        "void Uart_Set(const uint8_t value)\n{\n}\n"
        "void Uart_Take(struct cfg value)\n{\n}\n"
        "void Uart_Mode(enum eMode mode)\n{\n}\n"
        "void Uart_Count(unsigned count)\n{\n}\n"
    )

    assert check_pair(header, source, *UNIT_RULES) == []


def test_public_definition_needs_a_prototype() -> None:
    source = SOURCE + "\nvoid Uart_Flush(void)\n{\n}\n"

    violations = check_pair(HEADER, source, *UNIT_RULES)

    assert [(item.rule_id, item.line) for item in violations] == [("missing-prototype", 17)]
    assert "Uart_Flush" in violations[0].message


def test_unit_rules_need_both_files() -> None:
    assert check_text(SOURCE, *UNIT_RULES, path="uart.c") == []
    assert check_text(HEADER, *UNIT_RULES, path="uart.h") == []
