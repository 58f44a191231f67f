from enum import Enum
from abc import ABC, abstractmethod
from typing import Mapping, Sequence
from urllib.parse import quote
import math
import sys
import warnings

import requests

# When True, print status messages while fetching rates.
verbose: bool = False

BOT_CSV_URL = "https://rate.bot.com.tw/xrt/flcsv/0/day"

# Column positions in the Bank of Taiwan daily CSV.
BOT_CODE_COLUMN = 0
BOT_SPOT_BUY_COLUMN = 13
BOT_MIN_COLUMNS = 15

# Shorter responses are proxy error pages, not the feed.
MIN_FEED_LENGTH = 100

DEFAULT_MISSING_RATE = 30.0


class Currency(Enum):
    """Currencies quoted by the Bank of Taiwan spot rate board."""

    USD = "USD"
    HKD = "HKD"
    GBP = "GBP"
    AUD = "AUD"
    CAD = "CAD"
    SGD = "SGD"
    CHF = "CHF"
    JPY = "JPY"
    ZAR = "ZAR"
    SEK = "SEK"
    NZD = "NZD"
    THB = "THB"
    PHP = "PHP"
    IDR = "IDR"
    EUR = "EUR"
    KRW = "KRW"
    VND = "VND"
    MYR = "MYR"
    CNY = "CNY"


CURRENCY_CATALOG: dict[str, str] = {
    Currency.USD.value: "US Dollar",
    Currency.HKD.value: "Hong Kong Dollar",
    Currency.GBP.value: "British Pound",
    Currency.AUD.value: "Australian Dollar",
    Currency.CAD.value: "Canadian Dollar",
    Currency.SGD.value: "Singapore Dollar",
    Currency.CHF.value: "Swiss Franc",
    Currency.JPY.value: "Japanese Yen",
    Currency.ZAR.value: "South African Rand",
    Currency.SEK.value: "Swedish Krona",
    Currency.NZD.value: "New Zealand Dollar",
    Currency.THB.value: "Thai Baht",
    Currency.PHP.value: "Philippine Peso",
    Currency.IDR.value: "Indonesian Rupiah",
    Currency.EUR.value: "Euro",
    Currency.KRW.value: "South Korean Won",
    Currency.VND.value: "Vietnamese Dong",
    Currency.MYR.value: "Malaysian Ringgit",
    Currency.CNY.value: "Chinese Yuan",
}

FALLBACK_RATES: dict[str, float] = {
    Currency.USD.value: 32.20,
    Currency.HKD.value: 4.10,
    Currency.GBP.value: 40.80,
    Currency.AUD.value: 21.10,
    Currency.CAD.value: 23.40,
    Currency.SGD.value: 24.00,
    Currency.CHF.value: 36.30,
    Currency.JPY.value: 0.210,
    Currency.EUR.value: 34.80,
    Currency.CNY.value: 4.43,
}


class RateSourceError(RuntimeError):
    """Raised by a RateSource that could not produce rates."""


def parse_bot_csv(csv_text: str) -> dict[str, float]:
    """Parse the Bank of Taiwan daily rate CSV into spot buy rates.

    The first line is a header. Rows with fewer than 15 columns, a blank
    currency code or a non-positive spot buy rate are skipped.

    Args:
        csv_text: Raw CSV content.

    Returns:
        Mapping of currency code to spot buy rate (TWD per unit).
    """
    rates: dict[str, float] = {}

    for index, line in enumerate(csv_text.splitlines()):
        if index == 0 or not line.strip():
            continue

        columns = line.split(",")
        if len(columns) < BOT_MIN_COLUMNS:
            continue

        currency_code = columns[BOT_CODE_COLUMN].strip()
        try:
            spot_buy = float(columns[BOT_SPOT_BUY_COLUMN])
        except ValueError:
            continue

        if currency_code and math.isfinite(spot_buy) and spot_buy > 0:
            rates[currency_code] = spot_buy

    return rates


def fill_missing_rates(
    rates: Mapping[str, float],
    catalog: Mapping[str, str] = CURRENCY_CATALOG,
    fallback: Mapping[str, float] = FALLBACK_RATES,
) -> dict[str, float]:
    """Return a copy of ``rates`` with every catalog currency present.

    Missing or zero entries take the fallback constant, or
    DEFAULT_MISSING_RATE when there is none.
    """
    filled = dict(rates)
    for code in catalog:
        if not filled.get(code):
            filled[code] = fallback.get(code, DEFAULT_MISSING_RATE)
    return filled


class RateSource(ABC):
    """Abstract base class for market rate providers."""

    name: str = "rate source"

    @abstractmethod
    def fetch_rates(self) -> dict[str, float]:
        """Fetch the current rates.

        Returns:
            Mapping of currency code to rate.

        Raises:
            RateSourceError: If the source could not produce rates.
        """
        raise NotImplementedError("This method should be overridden by subclasses.")


class FixedRateSource(RateSource):
    """Rate source returning a fixed mapping. Useful for tests and offline use."""

    name = "fixed rates"

    def __init__(self, rates: Mapping[str, float] | None = None):
        """Initialize with fixed rates.

        Args:
            rates: Rates to return. Defaults to FALLBACK_RATES.
        """
        self.rates = dict(FALLBACK_RATES if rates is None else rates)

    def fetch_rates(self) -> dict[str, float]:
        return dict(self.rates)


class ProxiedBankOfTaiwanRateSource(RateSource):
    """Fetches the Bank of Taiwan daily CSV through a CORS proxy.

    The proxy URL is a template with a ``{url}`` placeholder which receives
    the URL-encoded feed address. Some proxies wrap the body in JSON; set
    ``unwrap_json`` to read it from the ``contents`` field.
    """

    def __init__(
        self,
        proxy_template: str,
        unwrap_json: bool = False,
        timeout: float = 10.0,
        feed_url: str = BOT_CSV_URL,
        catalog: Mapping[str, str] = CURRENCY_CATALOG,
    ):
        """Initialize the proxied feed source.

        Args:
            proxy_template: Proxy URL with a ``{url}`` placeholder.
            unwrap_json: If True, the proxy answers with JSON holding the
                feed in ``contents``.
            timeout: Request timeout in seconds.
            feed_url: Address of the CSV feed.
            catalog: Currencies that must be present in the result.
        """
        self.proxy_template = proxy_template
        self.unwrap_json = unwrap_json
        self.timeout = timeout
        self.feed_url = feed_url
        self.catalog = catalog
        self.name = proxy_template.split("/")[2] if "://" in proxy_template else proxy_template

    def request_url(self) -> str:
        return self.proxy_template.format(url=quote(self.feed_url, safe=""))

    def fetch_rates(self) -> dict[str, float]:
        """Fetch and parse the feed.

        Returns:
            Spot buy rates, with catalog currencies missing from the feed
            filled from the fallback constants.

        Raises:
            RateSourceError: On a network error, a non-2xx reply, a body that
                is too short, or a feed without a USD rate.
        """
        url = self.request_url()
        if verbose:
            print(f"  Fetching rates via {self.name} …", file=sys.stderr, flush=True)

        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RateSourceError(f"{self.name}: request failed: {e}") from e

        if not response.ok:
            raise RateSourceError(f"{self.name}: HTTP {response.status_code}")

        if self.unwrap_json:
            try:
                payload = response.json()
            except ValueError as e:
                raise RateSourceError(f"{self.name}: reply is not JSON") from e
            content = payload.get("contents") if isinstance(payload, dict) else None
            content = content or ""
        else:
            content = response.text

        if len(content) < MIN_FEED_LENGTH:
            raise RateSourceError(f"{self.name}: feed is empty or truncated")

        rates = parse_bot_csv(content)
        if not rates.get(Currency.USD.value):
            raise RateSourceError(f"{self.name}: feed has no USD rate")

        return fill_missing_rates(rates, self.catalog)


def default_rate_sources(timeout: float = 10.0) -> list[RateSource]:
    """Return the live sources in the order they are tried."""
    return [
        ProxiedBankOfTaiwanRateSource("https://corsproxy.io/?{url}", timeout=timeout),
        ProxiedBankOfTaiwanRateSource(
            "https://api.allorigins.win/get?url={url}", unwrap_json=True, timeout=timeout
        ),
    ]


def fetch_exchange_rates(
    sources: Sequence[RateSource] | None = None,
    fallback: Mapping[str, float] = FALLBACK_RATES,
) -> dict[str, float]:
    """
    Get current rates from the first source that succeeds.

    Args:
        sources: Sources to try in order. Defaults to default_rate_sources().
        fallback: Rates returned when every source fails.

    Returns:
        Mapping of currency code to rate.
    """
    if sources is None:
        sources = default_rate_sources()

    for source in sources:
        try:
            return source.fetch_rates()
        except RateSourceError as e:
            warnings.warn(f"Rate source failed, trying the next one: {e}", UserWarning)

    if sources:
        warnings.warn("All rate sources failed. Using fallback rates.", UserWarning)
    return dict(fallback)
