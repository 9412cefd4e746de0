from pathlib import Path

import pytest

from config.settings import settings
from core.extractor import common_root_prefix, extract_archive, safe_target
from util.errors import ArchiveCorrupt, UnsafeArchiveEntry


def test_common_root_is_stripped(tmp_path: Path, zip_bytes, minimal_project) -> None:
    ws = tmp_path / "ws"

    result = extract_archive(zip_bytes(minimal_project), ws)

    assert (ws / "Nargo.toml").is_file()
    assert (ws / "src" / "main.nr").is_file()
    assert not (ws / "proj").exists()
    assert sorted(result.written) == ["Nargo.toml", "src/main.nr"]
    assert result.skipped == []


def test_workspace_is_created_when_absent(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "a" / "b" / "ws"
    extract_archive(zip_bytes({"Nargo.toml": "[package]\n"}), ws)
    assert (ws / "Nargo.toml").read_text() == "[package]\n"


def test_mixed_archive_keeps_paths(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "ws"
    data = zip_bytes({"proj/Nargo.toml": "x", "README.md": "hi"})

    extract_archive(data, ws)

    assert (ws / "proj" / "Nargo.toml").is_file()
    assert (ws / "README.md").is_file()


def test_single_top_level_file_is_not_stripped(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "ws"
    extract_archive(zip_bytes({"Nargo.toml": "x"}), ws)
    assert (ws / "Nargo.toml").is_file()


def test_empty_archive_extracts_nothing(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "ws"
    result = extract_archive(zip_bytes({}), ws)
    assert ws.is_dir()
    assert list(ws.iterdir()) == []
    assert result.written == []


def test_directory_entries_are_created(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "ws"
    data = zip_bytes({"proj/": None, "proj/empty/": None, "proj/Nargo.toml": "x"})

    extract_archive(data, ws)

    assert (ws / "empty").is_dir()
    assert (ws / "Nargo.toml").is_file()


def test_parent_traversal_is_skipped_but_rest_extracts(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "jobs" / "ws"
    data = zip_bytes(
        {
            "proj/Nargo.toml": "x",
            "proj/../../escape.txt": "pwned",
            "proj/src/main.nr": "fn main() {}",
        }
    )

    result = extract_archive(data, ws)

    assert (ws / "Nargo.toml").is_file()
    assert (ws / "src" / "main.nr").is_file()
    assert not (tmp_path / "escape.txt").exists()
    assert not (tmp_path / "jobs" / "escape.txt").exists()
    assert result.skipped == ["proj/../../escape.txt"]


def test_evil_nested_entry_never_lands_above_workspace(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "uploads" / "job"
    data = zip_bytes({"evil/../../passwd": "root:x:0:0", "readme.txt": "hi"})

    result = extract_archive(data, ws)

    assert not (tmp_path / "uploads" / "passwd").exists()
    assert (ws / "readme.txt").is_file()
    assert result.skipped == ["evil/../../passwd"]


def test_absolute_entry_is_skipped(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "ws"
    outside = tmp_path / "abs_target.txt"
    data = zip_bytes({"Nargo.toml": "x", str(outside): "pwned"})

    result = extract_archive(data, ws)

    assert not outside.exists()
    assert (ws / "Nargo.toml").is_file()
    assert result.skipped == [str(outside)]


def test_sibling_prefix_is_not_inside(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "ws"
    data = zip_bytes({"../ws-evil/x.txt": "pwned", "ok.txt": "fine"})

    extract_archive(data, ws)

    assert not (tmp_path / "ws-evil").exists()
    assert (ws / "ok.txt").is_file()


def test_corrupt_archive_aborts(tmp_path: Path) -> None:
    with pytest.raises(ArchiveCorrupt):
        extract_archive(b"definitely not a zip", tmp_path / "ws")


@pytest.mark.parametrize(
    "names, expected",
    [
        (["proj/a", "proj/b/c"], "proj/"),
        (["proj/", "proj/a", "proj/b/"], "proj/"),
        (["proj/a", "other/b"], ""),
        (["proj/a", "top.txt"], ""),
        (["top.txt"], ""),
        ([], ""),
        (["proj/", "other/"], ""),
    ],
)
def test_common_root_prefix(names, expected) -> None:
    assert common_root_prefix(names) == expected


def test_safe_target_rejects_workspace_itself(tmp_path: Path) -> None:
    with pytest.raises(UnsafeArchiveEntry):
        safe_target(str(tmp_path), ".")


def test_oversized_entry_aborts_extraction(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "ws"
    data = zip_bytes({"Nargo.toml": "x", "big.bin": b"\0" * (3 * 1024 * 1024)})

    with pytest.raises(ArchiveCorrupt) as info:
        extract_archive(data, ws, max_bytes=1024 * 1024)

    assert str(info.value) == "Uploaded archive unpacks to more than 1MB"
    assert not (ws / "big.bin").exists()


def test_budget_counts_all_entries(tmp_path: Path, zip_bytes) -> None:
    ws = tmp_path / "ws"
    chunk = b"\0" * (600 * 1024)
    data = zip_bytes({"a.bin": chunk, "b.bin": chunk})

    with pytest.raises(ArchiveCorrupt):
        extract_archive(data, ws, max_bytes=1024 * 1024)

    assert (ws / "a.bin").stat().st_size == len(chunk)
    assert not (ws / "b.bin").exists()


def test_budget_defaults_to_settings(tmp_path: Path, zip_bytes, monkeypatch) -> None:
    monkeypatch.setattr(settings, "MAX_EXTRACTED_MB", 1)
    data = zip_bytes({"big.bin": b"\0" * (2 * 1024 * 1024)})

    with pytest.raises(ArchiveCorrupt):
        extract_archive(data, tmp_path / "ws")
