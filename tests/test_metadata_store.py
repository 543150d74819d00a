"""Tests for the JSON metadata store."""

import pytest

from conftest import read_json
from provider_registry.core.errors import CorruptIndex, StorageWriteError
from provider_registry.domain.models import ArchiveEntry, ArchiveIndex, VersionIndex
from provider_registry.storage.json_metadata_store import JsonMetadataStore, dump_document


@pytest.fixture
def store(data_dir):
    return JsonMetadataStore(data_dir)


class TestVersionIndex:
    """Test index.json handling"""

    def test_absent_document_is_empty(self, store, provider):
        index = store.load_version_index(provider)
        assert index.is_empty()

    def test_save_and_load(self, store, provider, provider_dir):
        provider_dir.mkdir(parents=True)
        index = VersionIndex()
        index.add("1.0.0")
        index.add("0.9.0")
        store.save_version_index(provider, index)

        assert read_json(provider_dir / "index.json") == {"versions": {"0.9.0": {}, "1.0.0": {}}}
        assert set(store.load_version_index(provider).versions) == {"0.9.0", "1.0.0"}

    def test_serialization_is_deterministic(self, store, provider, provider_dir):
        provider_dir.mkdir(parents=True)
        a = VersionIndex()
        a.add("2.0")
        a.add("1.0")
        b = VersionIndex()
        b.add("1.0")
        b.add("2.0")
        assert dump_document(a) == dump_document(b)

    def test_delete_is_noop_when_absent(self, store, provider):
        store.delete_version_index(provider)

    def test_delete(self, store, provider, provider_dir):
        provider_dir.mkdir(parents=True)
        index = VersionIndex()
        index.add("1.0")
        store.save_version_index(provider, index)
        store.delete_version_index(provider)
        assert not (provider_dir / "index.json").exists()

    @pytest.mark.parametrize(
        "content",
        ["{not json", "[]", '{"versions": []}', '{"versions": {"1.0": 5}}'],
    )
    def test_corrupt_document(self, store, provider, provider_dir, content):
        provider_dir.mkdir(parents=True)
        (provider_dir / "index.json").write_text(content)
        with pytest.raises(CorruptIndex):
            store.load_version_index(provider)

    def test_write_failure_leaves_previous_document(self, store, provider, provider_dir, monkeypatch):
        provider_dir.mkdir(parents=True)
        index = VersionIndex()
        index.add("1.0")
        store.save_version_index(provider, index)
        before = (provider_dir / "index.json").read_bytes()

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("provider_registry.storage.json_metadata_store.os.replace", broken_replace)
        index.add("2.0")
        with pytest.raises(StorageWriteError):
            store.save_version_index(provider, index)

        assert (provider_dir / "index.json").read_bytes() == before
        assert [p.name for p in provider_dir.iterdir()] == ["index.json"]


class TestArchiveIndex:
    """Test <version>.json handling"""

    def test_save_and_load(self, store, provider, provider_dir):
        provider_dir.mkdir(parents=True)
        index = ArchiveIndex(
            archives={
                "linux_amd64": ArchiveEntry(
                    filename="terraform-provider-foo_1.2.3_linux_amd64.zip",
                    hashes=["zh:abc"],
                ),
                "darwin_arm64": ArchiveEntry(filename="terraform-provider-foo_1.2.3_darwin_arm64.zip"),
            }
        )
        store.save_archive_index(provider, "1.2.3", index)

        assert read_json(provider_dir / "1.2.3.json") == {
            "archives": {
                "darwin_arm64": {"url": "terraform-provider-foo_1.2.3_darwin_arm64.zip"},
                "linux_amd64": {
                    "url": "terraform-provider-foo_1.2.3_linux_amd64.zip",
                    "hashes": ["zh:abc"],
                },
            }
        }
        loaded = store.load_archive_index(provider, "1.2.3")
        assert loaded == index

    def test_absent_document_is_empty(self, store, provider):
        assert store.load_archive_index(provider, "1.0").is_empty()

    def test_empty_hashes_are_omitted(self, store, provider, provider_dir):
        provider_dir.mkdir(parents=True)
        (provider_dir / "1.0.json").write_text(
            '{"archives": {"linux_amd64": {"url": "terraform-provider-foo_1.0_linux_amd64.zip", "hashes": []}}}'
        )

        index = store.load_archive_index(provider, "1.0")
        assert index.archives["linux_amd64"].hashes is None

        store.save_archive_index(provider, "1.0", index)
        assert read_json(provider_dir / "1.0.json") == {
            "archives": {"linux_amd64": {"url": "terraform-provider-foo_1.0_linux_amd64.zip"}}
        }

    def test_missing_url_is_corrupt(self, store, provider, provider_dir):
        provider_dir.mkdir(parents=True)
        (provider_dir / "1.0.json").write_text('{"archives": {"linux_amd64": {"hashes": []}}}')
        with pytest.raises(CorruptIndex):
            store.load_archive_index(provider, "1.0")

    def test_lists_versions_with_documents(self, store, provider, provider_dir):
        provider_dir.mkdir(parents=True)
        for name in ["index.json", "1.0.json", "2.1.0.json", "notes.json", "terraform-provider-foo_1.0_linux_amd64.zip"]:
            (provider_dir / name).write_text("{}")
        assert store.list_archive_index_versions(provider) == ["1.0", "2.1.0"]
