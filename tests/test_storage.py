"""Tests for the transaction stores, settings and password check."""

import json
from datetime import date
from pathlib import Path

import pytest
import requests

from fxfolio import auth, storage
from fxfolio.config import DEFAULT_STORAGE_KEY, Settings, load_settings
from fxfolio.portfolio import Transaction, TransactionType
from fxfolio.storage import (
    FallbackTransactionStore,
    LocalTransactionStore,
    RemoteTransactionStore,
    StorageError,
    build_store,
)

ENDPOINT = "https://store.example/exec"


class FakeResponse:
    def __init__(self, json_data=None, status_code=200):
        self._json = json_data
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self._json is None:
            raise ValueError("No JSON")
        return self._json


@pytest.fixture
def transactions():
    return [
        Transaction("a1", date(2025, 1, 1), "USD", 32.0, 100.0, TransactionType.BUY),
        Transaction("a2", date(2025, 1, 2), "USD", 33.0, 40.0, TransactionType.SELL),
    ]


class TestLocalTransactionStore:
    def test_missing_file_loads_empty(self, tmp_path):
        assert LocalTransactionStore(tmp_path / "none.json").load() == []

    def test_save_then_load(self, tmp_path, transactions):
        store = LocalTransactionStore(tmp_path / "nested" / "tx.json")

        store.save(transactions)

        assert store.load() == transactions

    def test_saves_under_key(self, tmp_path, transactions):
        path = tmp_path / "tx.json"
        LocalTransactionStore(path, key="mine").save(transactions)

        saved = json.loads(path.read_text())

        assert list(saved) == ["mine"]
        assert saved["mine"][0]["id"] == "a1"
        assert LocalTransactionStore(path, key="other").load() == []

    def test_keeps_other_keys(self, tmp_path, transactions):
        path = tmp_path / "tx.json"
        path.write_text(json.dumps({"other": [{"id": "z"}]}))

        LocalTransactionStore(path).save(transactions)

        saved = json.loads(path.read_text())
        assert saved["other"] == [{"id": "z"}]
        assert len(saved[DEFAULT_STORAGE_KEY]) == 2

    def test_corrupted_file(self, tmp_path):
        path = tmp_path / "tx.json"
        path.write_text("{not json")

        with pytest.raises(StorageError, match="Corrupted"):
            LocalTransactionStore(path).load()

    def test_bad_record(self, tmp_path):
        path = tmp_path / "tx.json"
        path.write_text(json.dumps({DEFAULT_STORAGE_KEY: [{"id": "x", "date": "bad", "type": "BUY", "amount": 1}]}))

        with pytest.raises(StorageError, match="Bad transaction record"):
            LocalTransactionStore(path).load()


class TestRemoteTransactionStore:
    def test_load(self, monkeypatch, transactions):
        records = [txn.to_dict() for txn in transactions]
        monkeypatch.setattr(storage.requests, "get", lambda url, timeout: FakeResponse(records))

        assert RemoteTransactionStore(ENDPOINT).load() == transactions

    def test_load_rejects_non_list(self, monkeypatch):
        monkeypatch.setattr(storage.requests, "get", lambda url, timeout: FakeResponse({"error": "x"}))

        with pytest.raises(StorageError, match="list of transactions"):
            RemoteTransactionStore(ENDPOINT).load()

    def test_load_rejects_bad_record(self, monkeypatch):
        records = [{"id": "x", "date": "2025-01-01", "currency": "USD", "rate": 32, "amount": "lots", "type": "BUY"}]
        monkeypatch.setattr(storage.requests, "get", lambda url, timeout: FakeResponse(records))

        with pytest.raises(StorageError, match="Bad transaction record"):
            RemoteTransactionStore(ENDPOINT).load()

    def test_load_http_error(self, monkeypatch):
        monkeypatch.setattr(storage.requests, "get", lambda url, timeout: FakeResponse([], status_code=500))

        with pytest.raises(StorageError):
            RemoteTransactionStore(ENDPOINT).load()

    def test_save_posts_records(self, monkeypatch, transactions):
        posted = {}

        def fake_post(url, json, timeout):
            posted["url"] = url
            posted["json"] = json
            return FakeResponse({})

        monkeypatch.setattr(storage.requests, "post", fake_post)

        RemoteTransactionStore(ENDPOINT).save(transactions)

        assert posted["url"] == ENDPOINT
        assert posted["json"] == [txn.to_dict() for txn in transactions]


class TestFallbackTransactionStore:
    def test_remote_failure_falls_back_to_local(self, monkeypatch, tmp_path, transactions):
        def fake_get(url, timeout):
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(storage.requests, "get", fake_get)
        local = LocalTransactionStore(tmp_path / "tx.json")
        local.save(transactions)

        store = FallbackTransactionStore(local, RemoteTransactionStore(ENDPOINT))

        with pytest.warns(UserWarning, match="local copy"):
            assert store.load() == transactions

    def test_bad_remote_record_falls_back_to_local(self, monkeypatch, tmp_path, transactions):
        records = [{"id": "x", "date": "2025-01-01", "currency": "USD", "rate": 32, "amount": None, "type": "SELL"}]
        monkeypatch.setattr(storage.requests, "get", lambda url, timeout: FakeResponse(records))
        local = LocalTransactionStore(tmp_path / "tx.json")
        local.save(transactions)

        store = FallbackTransactionStore(local, RemoteTransactionStore(ENDPOINT))

        with pytest.warns(UserWarning, match="local copy"):
            assert store.load() == transactions

    def test_save_always_writes_local(self, monkeypatch, tmp_path, transactions):
        def fake_post(url, json, timeout):
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(storage.requests, "post", fake_post)
        local = LocalTransactionStore(tmp_path / "tx.json")
        store = FallbackTransactionStore(local, RemoteTransactionStore(ENDPOINT))

        with pytest.warns(UserWarning, match="local copy only"):
            store.save(transactions)

        assert local.load() == transactions

    def test_prefers_remote(self, monkeypatch, tmp_path, transactions):
        records = [transactions[0].to_dict()]
        monkeypatch.setattr(storage.requests, "get", lambda url, timeout: FakeResponse(records))
        local = LocalTransactionStore(tmp_path / "tx.json")
        local.save(transactions)

        store = FallbackTransactionStore(local, RemoteTransactionStore(ENDPOINT))

        assert store.load() == [transactions[0]]


def test_build_store_local_only(tmp_path):
    store = build_store(Settings(data_file=tmp_path / "tx.json", storage_key="k"))

    assert store.remote is None
    assert store.local.path == tmp_path / "tx.json"
    assert store.local.key == "k"


def test_build_store_with_endpoint(tmp_path):
    store = build_store(Settings(persistence_endpoint=ENDPOINT, data_file=tmp_path / "tx.json", request_timeout=3))

    assert store.remote is not None
    assert store.remote.endpoint == ENDPOINT
    assert store.remote.timeout == 3


class TestLoadSettings:
    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FXFOLIO_ENDPOINT", ENDPOINT)
        monkeypatch.setenv("FXFOLIO_DATA_FILE", str(tmp_path / "tx.json"))
        monkeypatch.setenv("FXFOLIO_STORAGE_KEY", "custom")
        monkeypatch.setenv("FXFOLIO_TIMEOUT", "2.5")

        settings = load_settings(str(tmp_path / "missing.env"))

        assert settings.persistence_endpoint == ENDPOINT
        assert settings.data_file == tmp_path / "tx.json"
        assert settings.storage_key == "custom"
        assert settings.request_timeout == 2.5
        assert "USD" in settings.currency_catalog

    def test_defaults(self, monkeypatch, tmp_path):
        for name in ("FXFOLIO_ENDPOINT", "FXFOLIO_DATA_FILE", "FXFOLIO_STORAGE_KEY", "FXFOLIO_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)

        settings = load_settings(str(tmp_path / "missing.env"))

        assert settings.persistence_endpoint == ""
        assert settings.data_file == Path.cwd() / ".cache" / "fxfolio" / "transactions.json"
        assert settings.storage_key == DEFAULT_STORAGE_KEY
        assert settings.request_timeout == 10.0

    def test_bad_timeout(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FXFOLIO_TIMEOUT", "soon")

        with pytest.raises(ValueError, match="FXFOLIO_TIMEOUT"):
            load_settings(str(tmp_path / "missing.env"))


class TestVerifyPassword:
    def test_accepted(self, monkeypatch):
        sent = {}

        def fake_post(url, json, timeout):
            sent.update(json)
            return FakeResponse({"success": True})

        monkeypatch.setattr(auth.requests, "post", fake_post)

        assert auth.verify_password(ENDPOINT, "secret") is True
        assert sent == {"type": "auth", "password": "secret"}

    def test_rejected(self, monkeypatch):
        monkeypatch.setattr(auth.requests, "post", lambda url, json, timeout: FakeResponse({"success": "yes"}))

        assert auth.verify_password(ENDPOINT, "secret") is False

    def test_empty_inputs(self):
        assert auth.verify_password("", "secret") is False
        assert auth.verify_password(ENDPOINT, "") is False

    def test_network_error(self, monkeypatch):
        def fake_post(url, json, timeout):
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(auth.requests, "post", fake_post)

        with pytest.warns(UserWarning):
            assert auth.verify_password(ENDPOINT, "secret") is False
