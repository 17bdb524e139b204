"""Structural tracker tests: scopes, switch/case, include guards and symbols."""

from __future__ import annotations

from cstyle.tracker import (
    CaseTerminated,
    FallthroughCandidate,
    HeaderClosed,
    HeaderGuardTracker,
    ScopeOpened,
    SwitchClosed,
)
from tests.helpers import snapshot_for, track

SWITCH_SOURCE = (
    "void Foo_Run(int mode)\n"
    "{\n"
    "    switch (mode)\n"
    "    {\n"
    "        case 1:\n"
    "            doA();\n"
    "        case 2:\n"
    "            doB();\n"
    "            break;\n"
    "        default:\n"
    "            break;\n"
    "    }\n"
    "}\n"
)


def _events(snapshots, event_type):  # type: ignore[no-untyped-def]
    return [
        event
        for snapshot in snapshots
        for event in snapshot.events
        if isinstance(event, event_type)
    ]


def test_brace_kinds_are_recognized() -> None:
    snapshots, _ = track(
        'extern "C" {\n'
        "typedef struct\n"
        "{\n"
        "    int x;\n"
        "} sPoint_t;\n"
        "static const int gTable[2] = {1, 2};\n"
        "void Foo_Run(int mode)\n"
        "{\n"
        "    if (mode)\n"
        "    {\n"
        "    }\n"
        "    else\n"
        "    {\n"
        "    }\n"
        "    for (;;)\n"
        "    {\n"
        "    }\n"
        "    do\n"
        "    {\n"
        "    } while (mode);\n"
        "    switch (mode)\n"
        "    {\n"
        "        default:\n"
        "            break;\n"
        "    }\n"
        "    {\n"
        "    }\n"
        "}\n"
        "}\n"
    )

    opened = [event.frame for event in _events(snapshots, ScopeOpened)]
    assert [frame.kind for frame in opened] == [
        "extern",
        "struct",
        "initializer",
        "function",
        "if",
        "else",
        "loop",
        "loop",
        "switch",
        "block",
    ]
    assert opened[3].name == "Foo_Run"
    assert opened[6].keyword_token is not None and opened[6].keyword_token.text == "for"
    assert opened[7].keyword_token is not None and opened[7].keyword_token.text == "do"
    assert snapshot_for(snapshots, "x").frames[-1].kind == "struct"
    assert snapshot_for(snapshots, "sPoint_t").identifier_class == "type_name"
    assert snapshots[-1].depth == 0

    do_while = [event for event in _events(snapshots, HeaderClosed) if event.do_while]
    assert [event.keyword.text for event in do_while] == ["while"]


def test_struct_members_are_collected_in_order() -> None:
    snapshots, _ = track(
        "struct sPacket\n{\n    uint8_t flag;\n    uint32_t *next;\n    char name[8];\n};\n"
    )

    closed = snapshot_for(snapshots, "}")
    frame = closed.events[-1].frame  # type: ignore[union-attr]
    assert frame.kind == "struct"
    assert frame.name == "sPacket"
    assert [(member.name, member.pointer, member.array) for member in frame.members] == [
        ("flag", False, False),
        ("next", True, False),
        ("name", False, True),
    ]


def test_conditional_depth_counts_enclosing_if_and_else() -> None:
    snapshots, _ = track(
        "void F(int a)\n{\n    if (a)\n    {\n        if (a)\n        {\n"
        "            x = 1;\n        }\n    }\n    else\n    {\n        y = 2;\n    }\n}\n"
    )

    assert snapshot_for(snapshots, "x").conditional_depth == 2
    assert snapshot_for(snapshots, "y").conditional_depth == 1
    assert snapshot_for(snapshots, "x").in_function_body


def test_loop_condition_covers_for_test_clause_and_while() -> None:
    snapshots, _ = track(
        "void F(void)\n{\n    int i;\n    for (i = 0; i < 10; i++)\n    {\n    }\n"
        "    while (n != 3)\n    {\n    }\n    if (x == 5)\n    {\n    }\n}\n"
    )

    assert not snapshot_for(snapshots, "0").loop_condition
    assert snapshot_for(snapshots, "10").loop_condition
    assert snapshot_for(snapshots, "3").loop_condition
    assert not snapshot_for(snapshots, "5").loop_condition


def test_switch_tracker_reports_fallthrough_and_terminated_cases() -> None:
    snapshots, _ = track(SWITCH_SOURCE)

    fallthrough = _events(snapshots, FallthroughCandidate)
    terminated = _events(snapshots, CaseTerminated)
    closed = _events(snapshots, SwitchClosed)

    assert [event.case_token.line for event in fallthrough] == [5]
    assert [event.case_token.text for event in terminated] == ["case", "default"]
    assert [event.terminator.text for event in terminated] == ["break", "break"]
    assert len(closed) == 1 and closed[0].has_default
    assert snapshot_for(snapshots, "doA").switch_state == "in_case"
    assert snapshots[-1].switch_state == "outside_switch"


def test_fallthrough_comment_marks_intentional_fallthrough() -> None:
    marked = SWITCH_SOURCE.replace("doA();\n", "doA();\n            // fall through\n")
    snapshots, _ = track(marked)

    assert _events(snapshots, FallthroughCandidate) == []


def test_symbol_table_tracks_signedness_per_scope() -> None:
    snapshots, _ = track(
        "static uint32_t gTotal;\n"
        "void Foo_Add(int16_t delta)\n"
        "{\n"
        "    uint8_t count = 0;\n"
        "    char *name = 0;\n"
        "    if (count)\n"
        "    {\n"
        "        int32_t inner = 0;\n"
        "    }\n"
        "}\n"
    )

    in_body = snapshot_for(snapshots, "if")
    assert in_body.signedness("count") == "unsigned"
    assert in_body.signedness("delta") == "signed"
    assert in_body.signedness("gTotal") == "unsigned"
    assert in_body.signedness("name") is None
    assert snapshot_for(snapshots, "inner").signedness("inner") == "signed"

    after = snapshots[-1]
    assert after.signedness("inner") is None
    assert after.signedness("gTotal") == "unsigned"


def test_functions_and_includes_are_collected() -> None:
    _, outcome = track(
        '#include "uart.h"\n'
        "#include <stdint.h>\n"
        "uint8_t Uart_Read(uint8_t *buffer, uint16_t length);\n"
        "static inline int helper(void)\n"
        "{\n"
        "    return 0;\n"
        "}\n"
    )

    assert [(item.target, item.quoted) for item in outcome.includes] == [
        ("uart.h", True),
        ("stdint.h", False),
    ]
    assert [
        (item.name, item.identifier_class, item.signature, item.is_definition)
        for item in outcome.functions
    ] == [
        ("Uart_Read", "public_function", "uint8_t(uint8_t *, uint16_t)", False),
        ("helper", "private_function", "int()", True),
    ]


def test_header_guard_tracker_accepts_guarded_header() -> None:
    guard = HeaderGuardTracker()
    guard.feed_directive("ifndef", "FOO_H")
    assert guard.state == "saw_ifndef"
    guard.feed_directive("define", "FOO_H")
    guard.feed_code()
    guard.feed_directive("ifdef", "__cplusplus")
    guard.feed_code()
    guard.feed_directive("endif", "")
    assert guard.state == "guarded"
    guard.feed_directive("endif", "")

    assert guard.state == "closed"
    assert guard.finish() is None


def test_header_guard_tracker_reports_problems() -> None:
    mismatch = HeaderGuardTracker()
    mismatch.feed_directive("ifndef", "FOO_H")
    mismatch.feed_directive("define", "BAR_H")

    unclosed = HeaderGuardTracker()
    unclosed.feed_directive("ifndef", "FOO_H")
    unclosed.feed_directive("define", "FOO_H")
    unclosed.feed_code()

    trailing = HeaderGuardTracker()
    trailing.feed_directive("ifndef", "FOO_H")
    trailing.feed_directive("define", "FOO_H")
    trailing.feed_directive("endif", "")
    trailing.feed_code()

    code_first = HeaderGuardTracker()
    code_first.feed_code()

    assert (mismatch.finish() or "").startswith("Guard macro mismatch")
    assert unclosed.finish() == "Include guard '#ifndef FOO_H' has no closing '#endif'."
    assert (trailing.finish() or "").startswith("Content after the closing '#endif'")
    assert (code_first.finish() or "").startswith("Header must open with")
    assert HeaderGuardTracker().finish() == "Header has no include guard."


def test_tracker_runs_guard_only_for_headers() -> None:
    text = "int Foo_Get(void);\n"

    _, as_source = track(text)
    _, as_header = track(text, role="header")

    assert as_source.guard_problem is None
    assert as_header.guard_problem is not None
