"""
Unit tests for the key-value stores.
"""

import json
import os
import stat
from unittest.mock import MagicMock, patch

import pytest

from kiteauth.storage import (
    API_KEY_KEY,
    JsonFileStore,
    MemoryStore,
    RedisStore,
    default_store,
)


class TestMemoryStore:
    def test_set_get_clear(self):
        store = MemoryStore()
        assert store.get(API_KEY_KEY) is None
        store.set(API_KEY_KEY, "key1")
        assert store.get(API_KEY_KEY) == "key1"
        store.clear(API_KEY_KEY)
        assert store.get(API_KEY_KEY) is None

    def test_clear_missing_key_is_noop(self):
        MemoryStore().clear("nothing")

    def test_initial_values(self):
        store = MemoryStore({"a": "1"})
        assert "a" in store
        assert store.get("a") == "1"


class TestJsonFileStore:
    @pytest.fixture
    def path(self, tmp_path):
        return tmp_path / "nested" / "storage.json"

    def test_persists_across_instances(self, path):
        JsonFileStore(path).set(API_KEY_KEY, "key1")
        assert JsonFileStore(path).get(API_KEY_KEY) == "key1"

    def test_file_is_private(self, path):
        JsonFileStore(path).set(API_KEY_KEY, "key1")
        mode = stat.S_IMODE(os.stat(path).st_mode)
        assert mode == 0o600

    def test_clear_removes_only_that_key(self, path):
        store = JsonFileStore(path)
        store.set("a", "1")
        store.set("b", "2")
        store.clear("a")
        assert json.loads(path.read_text()) == {"b": "2"}

    def test_corrupt_file_reads_as_empty(self, path):
        store = JsonFileStore(path)
        path.write_text("{broken")
        assert store.get(API_KEY_KEY) is None
        store.set(API_KEY_KEY, "key1")
        assert store.get(API_KEY_KEY) == "key1"

    def test_undecodable_file_reads_as_empty(self, path):
        store = JsonFileStore(path)
        path.write_bytes(b"\xff\xfe\x00garbage")
        assert store.get(API_KEY_KEY) is None
        store.set(API_KEY_KEY, "key1")
        assert store.get(API_KEY_KEY) == "key1"

    def test_file_is_created_private(self, path):
        # Without the follow-up chmod the mode must already be 0600
        with patch("kiteauth.storage.os.chmod"):
            JsonFileStore(path).set(API_KEY_KEY, "key1")
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_failed_write_keeps_previous_contents(self, path):
        store = JsonFileStore(path)
        store.set(API_KEY_KEY, "key1")

        with patch("kiteauth.storage.json.dump", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.set(API_KEY_KEY, "key2")

        assert store.get(API_KEY_KEY) == "key1"
        assert [p.name for p in path.parent.iterdir()] == ["storage.json"]


class TestRedisStore:
    def test_keys_are_namespaced(self):
        redis_client = MagicMock()
        redis_client.get.return_value = "key1"
        store = RedisStore(client=redis_client)

        store.set(API_KEY_KEY, "key1")
        assert store.get(API_KEY_KEY) == "key1"
        store.clear(API_KEY_KEY)

        redis_client.set.assert_called_once_with("kiteauth:kite_api_key", "key1")
        redis_client.get.assert_called_once_with("kiteauth:kite_api_key")
        redis_client.delete.assert_called_once_with("kiteauth:kite_api_key")


class TestDefaultStore:
    def test_file_store_without_redis_url(self, monkeypatch, tmp_path):
        from kiteauth.config import settings

        monkeypatch.setattr(settings, "redis_url", "")
        monkeypatch.setattr(settings, "storage_path", tmp_path / "s.json")
        assert isinstance(default_store(), JsonFileStore)

    def test_falls_back_when_redis_unreachable(self, monkeypatch, tmp_path):
        from kiteauth.config import settings

        monkeypatch.setattr(settings, "redis_url", "redis://unreachable:6379/0")
        monkeypatch.setattr(settings, "storage_path", tmp_path / "s.json")

        broken = MagicMock()
        broken.ping.side_effect = ConnectionError("no redis")
        with patch("redis.Redis.from_url", return_value=broken):
            assert isinstance(default_store(), JsonFileStore)

    def test_uses_redis_when_reachable(self, monkeypatch):
        from kiteauth.config import settings

        monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/0")
        with patch("redis.Redis.from_url", return_value=MagicMock()):
            assert isinstance(default_store(), RedisStore)
