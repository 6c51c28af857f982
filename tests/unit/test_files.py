"""
Tests unitarios para JsonWriter y la carga de la última exportación.
"""
import os

import pytest

from airtable_mirror.infrastructure.files.file_loader import LatestExportLoader, export_file_pattern
from airtable_mirror.infrastructure.files.json_writer import JsonWriter
from airtable_mirror.shared.exceptions import StorageError


class TestJsonWriter:
    def test_write_and_read(self, tmp_path) -> None:
        writer = JsonWriter(tmp_path / "out")

        path = writer.write("Items", [{"id": "rec1", "fields": {"título": "Señal"}}])

        assert path == tmp_path / "out" / "Items.json"
        assert "Señal" in path.read_text(encoding="utf-8")
        assert writer.read("Items") == [{"id": "rec1", "fields": {"título": "Señal"}}]

    def test_read_missing_returns_none(self, tmp_path) -> None:
        assert JsonWriter(tmp_path).read("Items") is None

    def test_remove(self, tmp_path) -> None:
        writer = JsonWriter(tmp_path)
        writer.write("Items", [])

        writer.remove("Items")
        writer.remove("Items")

        assert not writer.path_for("Items").exists()


class TestExportFilePattern:
    @pytest.mark.parametrize("name", ["Items.json", "Items_2024-05-01.json", "Items-20240501T1010.json"])
    def test_matches_table_exports(self, name: str) -> None:
        assert export_file_pattern("Items").match(name)

    @pytest.mark.parametrize("name", ["Item_Admin_Info.json", "Items_Admin.json", "Items.csv"])
    def test_rejects_other_tables(self, name: str) -> None:
        assert not export_file_pattern("Items").match(name)


class TestLatestExportLoader:
    def test_loads_most_recent_file(self, tmp_path) -> None:
        writer = JsonWriter(tmp_path)
        old = writer.write("Items_2024-01-01", [{"id": "old"}])
        new = writer.write("Items_2024-02-01", [{"id": "new"}])
        os.utime(old, (1_000, 1_000))
        os.utime(new, (2_000, 2_000))

        assert LatestExportLoader(tmp_path)("Items") == [{"id": "new"}]

    def test_missing_directory_raises(self, tmp_path) -> None:
        with pytest.raises(StorageError):
            LatestExportLoader(tmp_path / "nope").load_latest("Items")

    def test_no_matching_files_raises(self, tmp_path) -> None:
        JsonWriter(tmp_path).write("Subjects", [])

        with pytest.raises(StorageError):
            LatestExportLoader(tmp_path).load_latest("Items")

    def test_non_list_content_raises(self, tmp_path) -> None:
        JsonWriter(tmp_path).write("Items", {"records": []})

        with pytest.raises(StorageError):
            LatestExportLoader(tmp_path).load_latest("Items")
