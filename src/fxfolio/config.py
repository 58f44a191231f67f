"""Runtime settings for the collaborator layer (stores, rate sources, auth)."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .currency import CURRENCY_CATALOG

DEFAULT_STORAGE_KEY = "forex_transactions"


def default_data_file() -> Path:
    """Get the default local transaction file under the project's .cache folder."""
    return Path.cwd() / ".cache" / "fxfolio" / "transactions.json"


@dataclass
class Settings:
    """Settings injected into the stores, rate sources and CLI."""

    persistence_endpoint: str = ""
    data_file: Path = field(default_factory=default_data_file)
    storage_key: str = DEFAULT_STORAGE_KEY
    request_timeout: float = 10.0
    currency_catalog: dict[str, str] = field(default_factory=lambda: dict(CURRENCY_CATALOG))


def load_settings(env_file: str | None = None) -> Settings:
    """Build Settings from the environment, after loading a ``.env`` file.

    Args:
        env_file: Path of the dotenv file. Defaults to ``.env`` lookup.

    Returns:
        The resolved Settings.

    Raises:
        ValueError: If FXFOLIO_TIMEOUT is not a number.
    """
    load_dotenv(env_file)

    data_file = os.getenv("FXFOLIO_DATA_FILE")
    timeout = os.getenv("FXFOLIO_TIMEOUT")

    try:
        request_timeout = float(timeout) if timeout else 10.0
    except ValueError as e:
        raise ValueError(f"FXFOLIO_TIMEOUT must be a number of seconds, got {timeout!r}") from e

    return Settings(
        persistence_endpoint=os.getenv("FXFOLIO_ENDPOINT", "").strip(),
        data_file=Path(data_file) if data_file else default_data_file(),
        storage_key=os.getenv("FXFOLIO_STORAGE_KEY") or DEFAULT_STORAGE_KEY,
        request_timeout=request_timeout,
    )
