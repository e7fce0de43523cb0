"""
Test FormPersistence - per-form JSON records keyed by primary key
"""

import json
import os

import pytest

from formchat.errors import MissingPrimaryKeyError, PersistenceError
from formchat.persistence import FormPersistence


@pytest.fixture
def store(tmp_path):
    return FormPersistence(str(tmp_path / "forms"))


def test_save_then_load_round_trip(store):
    record = {"FirstName": "John", "License": "555-55-5555"}

    path = store.save("registration", "555-55-5555", record)

    assert os.path.isabs(path)
    assert store.load("registration", "555-55-5555") == record


def test_load_with_different_key_is_absent(store):
    store.save("registration", "555-55-5555", {"License": "555-55-5555"})

    assert store.load("registration", "111-11-1111") is None
    assert store.load("visit", "555-55-5555") is None


def test_save_creates_directory(tmp_path):
    base = tmp_path / "does" / "not" / "exist"
    store = FormPersistence(str(base))

    store.save("registration", "k1", {"a": "1"})

    assert (base / "registration" / "k1.json").exists()


def test_save_is_full_replace(store):
    store.save("registration", "k1", {"FirstName": "John", "Address": "12 Main St"})
    store.save("registration", "k1", {"FirstName": "Jane"})

    assert store.load("registration", "k1") == {"FirstName": "Jane"}


def test_file_is_human_readable_json(store):
    path = store.save("registration", "k1", {"Name": "José"})

    with open(path, encoding="utf-8") as f:
        text = f.read()

    assert "José" in text
    assert "\n  " in text
    assert json.loads(text) == {"Name": "José"}


def test_no_temp_files_left_behind(store):
    store.save("registration", "k1", {"a": "1"})

    names = os.listdir(store.form_dir("registration"))

    assert names == ["k1.json"]


def test_keys_cannot_escape_base_dir(store, tmp_path):
    path = store.save("registration", "../../evil", {"a": "1"})

    assert os.path.dirname(path) == str(store.form_dir("registration").absolute())
    assert store.load("registration", "../../evil") == {"a": "1"}


def test_distinct_keys_map_to_distinct_files(store):
    assert store.record_path("f", "a/b") != store.record_path("f", "a%2Fb")
    assert store.record_path("f", "a b") != store.record_path("f", "a+b")


def test_empty_key_rejected(store):
    with pytest.raises(MissingPrimaryKeyError):
        store.save("registration", "", {"a": "1"})

    assert store.load("registration", "") is None


def test_corrupt_record_raises_persistence_error(store):
    path = store.record_path("registration", "k1")
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        store.load("registration", "k1")


def test_write_failure_raises_persistence_error(tmp_path):
    # A file where the base directory should be makes mkdir fail
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    store = FormPersistence(str(blocker))

    with pytest.raises(PersistenceError):
        store.save("registration", "k1", {"a": "1"})


def test_list_keys_and_exists(store):
    assert store.list_keys("registration") == []

    store.save("registration", "b-key", {"a": "1"})
    store.save("registration", "a key/with slash", {"a": "2"})

    assert store.list_keys("registration") == ["a key/with slash", "b-key"]
    assert store.exists("registration", "b-key")
    assert not store.exists("registration", "c-key")
