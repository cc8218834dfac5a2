"""
Tests for Storage Backends

Tests for visionary/storage/backends.py
"""

import pytest

from visionary.core.exceptions import StorageCorruptError, StorageQuotaExceeded
from visionary.storage.backends import JsonFileStorage, MemoryStorage


@pytest.fixture(params=["memory", "file"])
def storage(request, temp_dir):
    if request.param == "memory":
        return MemoryStorage(quota_bytes=200)
    return JsonFileStorage(temp_dir / "kv", quota_bytes=200)


class TestKeyValueStorage:
    """Behaviour shared by every backend."""

    def test_absent_key_reads_none(self, storage):
        assert storage.read("missing") is None

    def test_write_then_read(self, storage):
        storage.write("slot", [{"name": "Mara"}])
        assert storage.read("slot") == [{"name": "Mara"}]

    def test_quota_rejection_keeps_previous_value(self, storage):
        storage.write("slot", ["small"])

        with pytest.raises(StorageQuotaExceeded) as exc_info:
            storage.write("slot", ["x" * 500])

        assert storage.read("slot") == ["small"]
        assert exc_info.value.details["key"] == "slot"

    def test_quota_counts_other_keys(self, storage):
        storage.write("a", "x" * 120)

        with pytest.raises(StorageQuotaExceeded):
            storage.write("b", "y" * 120)
        assert storage.read("b") is None

    def test_overwrite_reuses_own_space(self, storage):
        storage.write("a", "x" * 150)
        storage.write("a", "y" * 150)
        assert storage.read("a") == "y" * 150

    def test_write_many_checks_combined_size(self, storage):
        storage.write("a", "x" * 50)
        storage.write("b", "y" * 50)

        with pytest.raises(StorageQuotaExceeded):
            storage.write_many({"a": "x" * 100, "b": "y" * 100})

        assert storage.read("a") == "x" * 50
        assert storage.read("b") == "y" * 50

    def test_write_many(self, storage):
        storage.write_many({"a": [1], "b": {"title": "Heist"}})
        assert storage.read("a") == [1]
        assert storage.read("b") == {"title": "Heist"}

    def test_delete(self, storage):
        storage.write("a", 1)
        storage.delete("a")
        storage.delete("a")
        assert storage.read("a") is None
        assert storage.used_bytes() == 0


class TestJsonFileStorage:
    """File backend specifics."""

    def test_corrupt_file(self, temp_dir):
        storage = JsonFileStorage(temp_dir)
        (temp_dir / "slot.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageCorruptError):
            storage.read("slot")

    def test_no_temp_files_left_behind(self, temp_dir):
        storage = JsonFileStorage(temp_dir, quota_bytes=50)
        storage.write("slot", "ok")
        with pytest.raises(StorageQuotaExceeded):
            storage.write("slot", "z" * 100)

        assert sorted(p.name for p in temp_dir.iterdir()) == ["slot.json"]

    def test_values_survive_new_instance(self, temp_dir):
        JsonFileStorage(temp_dir).write("slot", {"title": "Heist"})
        assert JsonFileStorage(temp_dir).read("slot") == {"title": "Heist"}
