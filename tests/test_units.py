"""Unit pairing and path collection tests."""

from __future__ import annotations

from pathlib import Path

from cstyle.units import SourceFile, collect_paths, pair_units, role_for_path, source_file


def _names(units) -> list[tuple[str, str | None, str | None]]:  # type: ignore[no-untyped-def]
    return [
        (
            unit.name,
            unit.header.path if unit.header else None,
            unit.source.path if unit.source else None,
        )
        for unit in units
    ]


def test_role_follows_suffix() -> None:
    assert role_for_path("src/uart.h") == "header"
    assert role_for_path("src/uart.H") == "header"
    assert role_for_path("src/uart.c") == "source"
    assert role_for_path("README") == "source"


def test_same_directory_pairs_come_first() -> None:
    units = pair_units(
        [
            source_file("src/uart.c"),
            source_file("src/uart.h"),
            source_file("src/main.c"),
        ]
    )

    assert _names(units) == [
        ("src/main", None, "src/main.c"),
        ("src/uart", "src/uart.h", "src/uart.c"),
    ]


def test_unique_stems_pair_across_directories() -> None:
    units = pair_units([source_file("include/spi.h"), source_file("src/spi.c")])

    assert _names(units) == [("src/spi", "include/spi.h", "src/spi.c")]


def test_ambiguous_stems_stay_unpaired() -> None:
    units = pair_units([source_file("a/x.h"), source_file("b/x.h"), source_file("c/x.c")])

    assert _names(units) == [
        ("a/x", "a/x.h", None),
        ("b/x", "b/x.h", None),
        ("c/x", None, "c/x.c"),
    ]


def test_source_file_prefers_in_memory_text(tmp_path: Path) -> None:
    path = tmp_path / "disk.c"
    path.write_text("int onDisk;\n", encoding="utf-8")

    assert SourceFile(path=path.as_posix(), role="source").read() == "int onDisk;\n"
    assert source_file(path.as_posix(), text="int inMemory;\n").read() == "int inMemory;\n"


def test_collect_paths_expands_directories_and_filters(tmp_path: Path) -> None:
    for relative in ["src/a.c", "src/a.h", "src/notes.txt", "build/gen.c"]:
        target = tmp_path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("", encoding="utf-8")

    everything = collect_paths([tmp_path])
    without_build = collect_paths([tmp_path], exclude=["*/build/*"])
    headers = collect_paths([tmp_path], include=["*.h"])

    assert [path.relative_to(tmp_path).as_posix() for path in everything] == [
        "build/gen.c",
        "src/a.c",
        "src/a.h",
    ]
    assert [path.name for path in without_build] == ["a.c", "a.h"]
    assert [path.name for path in headers] == ["a.h"]


def test_collect_paths_keeps_explicit_files(tmp_path: Path) -> None:
    explicit = tmp_path / "notes.txt"
    explicit.write_text("", encoding="utf-8")

    assert collect_paths([explicit]) == [explicit]
