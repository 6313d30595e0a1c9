from speech_practice.services.storage import (
    CREDENTIAL_KEY, CredentialStore, InMemoryKeyValueStore, JsonFileKeyValueStore
)


def test_json_file_store_round_trip(tmp_path):
    path = tmp_path / "nested" / "storage.json"
    store = JsonFileKeyValueStore(path)

    assert store.get("missing") is None
    store.set("a", "1")
    store.set("b", "2")

    reopened = JsonFileKeyValueStore(path)
    assert reopened.get("a") == "1"
    assert reopened.get("b") == "2"

    reopened.delete("a")
    reopened.delete("never-set")
    assert JsonFileKeyValueStore(path).get("a") is None
    assert list(path.parent.glob(".storage-*")) == []


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{not valid json", encoding="utf-8")
    store = JsonFileKeyValueStore(path)

    assert store.get("speechCoachHistory") is None
    store.set("k", "v")
    assert store.get("k") == "v"


def test_non_object_file_reads_as_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert JsonFileKeyValueStore(path).get("k") is None


def test_credential_store_prefers_saved_key():
    store = InMemoryKeyValueStore()
    credentials = CredentialStore(store, default="env-key")

    assert credentials.get() == "env-key"
    assert credentials.set("  saved-key ") is True
    assert credentials.get() == "saved-key"
    assert store.get(CREDENTIAL_KEY) == "saved-key"


def test_credential_store_rejects_blank_key():
    credentials = CredentialStore(InMemoryKeyValueStore())

    assert credentials.set("   ") is False
    assert credentials.get() is None
    assert credentials.has_credential() is False
