from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence
import json
import warnings

import requests

from .config import DEFAULT_STORAGE_KEY, Settings
from .portfolio import InvalidTransactionError, Transaction


class StorageError(RuntimeError):
    """Raised when a transaction store cannot be read or written."""


class TransactionStore(ABC):
    """Abstract base class for places the transaction list is kept."""

    @abstractmethod
    def load(self) -> list[Transaction]:
        raise NotImplementedError("This method should be overridden by subclasses.")

    @abstractmethod
    def save(self, transactions: Sequence[Transaction]) -> None:
        raise NotImplementedError("This method should be overridden by subclasses.")


class RemoteTransactionStore(TransactionStore):
    """Keeps the transaction list behind an HTTP endpoint.

    ``GET`` returns the JSON list of records; ``POST`` with the JSON list
    replaces it.
    """

    def __init__(self, endpoint: str, timeout: float = 10.0):
        self.endpoint = endpoint
        self.timeout = timeout

    def load(self) -> list[Transaction]:
        """Fetch the transaction list.

        Raises:
            StorageError: On network errors, non-2xx replies or a reply that
                is not a JSON list of valid transaction records.
        """
        try:
            response = requests.get(self.endpoint, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise StorageError(f"Could not load transactions from {self.endpoint}: {e}") from e

        if not isinstance(data, list):
            raise StorageError(f"Expected a list of transactions from {self.endpoint}")

        try:
            return [Transaction.from_dict(item) for item in data]
        except InvalidTransactionError as e:
            raise StorageError(f"Bad transaction record from {self.endpoint}: {e}") from e

    def save(self, transactions: Sequence[Transaction]) -> None:
        """Replace the remote transaction list.

        Raises:
            StorageError: On network errors or non-2xx replies.
        """
        payload = [txn.to_dict() for txn in transactions]
        try:
            response = requests.post(self.endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise StorageError(f"Could not save transactions to {self.endpoint}: {e}") from e


class LocalTransactionStore(TransactionStore):
    """Keeps the transaction list in a JSON file under a string key.

    The file holds an object mapping keys to record lists, so several lists
    can share one file.
    """

    def __init__(self, path: Path | str, key: str = DEFAULT_STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise StorageError(f"Corrupted transaction file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Transaction file {self.path} must contain a JSON object")
        return data

    def load(self) -> list[Transaction]:
        """Load the list stored under ``key``; a missing file or key is empty."""
        records = self._read().get(self.key) or []
        try:
            return [Transaction.from_dict(item) for item in records]
        except InvalidTransactionError as e:
            raise StorageError(f"Bad transaction record in {self.path}: {e}") from e

    def save(self, transactions: Sequence[Transaction]) -> None:
        """Write the list under ``key``, keeping other keys in the file."""
        data = self._read()
        data[self.key] = [txn.to_dict() for txn in transactions]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


class FallbackTransactionStore(TransactionStore):
    """Remote store with a local copy.

    Loads prefer the remote list and fall back to the local file. Saves go
    to the remote store when possible and always to the local file.
    """

    def __init__(self, local: LocalTransactionStore, remote: RemoteTransactionStore | None = None):
        self.local = local
        self.remote = remote

    def load(self) -> list[Transaction]:
        if self.remote is not None:
            try:
                return self.remote.load()
            except StorageError as e:
                warnings.warn(f"{e}. Using the local copy.", UserWarning)
        return self.local.load()

    def save(self, transactions: Sequence[Transaction]) -> None:
        if self.remote is not None:
            try:
                self.remote.save(transactions)
            except StorageError as e:
                warnings.warn(f"{e}. Saved to the local copy only.", UserWarning)
        self.local.save(transactions)


def build_store(settings: Settings) -> FallbackTransactionStore:
    """Create the store described by ``settings``."""
    local = LocalTransactionStore(settings.data_file, key=settings.storage_key)
    remote = None
    if settings.persistence_endpoint:
        remote = RemoteTransactionStore(settings.persistence_endpoint, timeout=settings.request_timeout)
    return FallbackTransactionStore(local, remote)
