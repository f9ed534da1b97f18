"""Unit tests for JSON file helpers."""

import json

import pytest

from curation.utils.file_io import read_json, write_json


class TestFileIO:
    def test_round_trip_keeps_unicode(self, tmp_path):
        path = tmp_path / "nested" / "data.json"

        write_json({"word": "niño", "letters": ["ñ"]}, path)

        assert read_json(path) == {"word": "niño", "letters": ["ñ"]}
        assert "niño" in path.read_text(encoding="utf-8")

    def test_no_temp_files_left_behind(self, tmp_path):
        write_json([1, 2, 3], tmp_path / "list.json")
        assert [p.name for p in tmp_path.iterdir()] == ["list.json"]

    def test_failed_write_keeps_previous_file(self, tmp_path):
        path = tmp_path / "data.json"
        write_json({"version": 1}, path)

        with pytest.raises(ValueError, match="Circular reference"):
            write_json({"circular": _circular()}, path)

        assert read_json(path) == {"version": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_json(tmp_path / "missing.json")

    def test_read_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{oops")

        with pytest.raises(json.JSONDecodeError):
            read_json(path)


def _circular():
    data = []
    data.append(data)
    return data
