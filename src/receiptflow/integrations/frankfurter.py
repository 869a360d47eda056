"""Exchange rates from the Frankfurter API (ECB reference rates)."""

import logging
from decimal import Decimal
from typing import Optional

import requests

from receiptflow.domain.currency import RateProvider
from receiptflow.domain.errors import RateProviderError

FRANKFURTER_API_URL = "https://api.frankfurter.app"
logger = logging.getLogger(__name__)


class FrankfurterRateProvider(RateProvider):
    """Rate provider backed by ``GET /latest?from=X&to=Y``."""

    def __init__(
        self,
        base_url: str = FRANKFURTER_API_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        url = f"{self.base_url}/latest"
        try:
            resp = self.session.get(
                url,
                params={"from": from_currency, "to": to_currency},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            # Decimal straight from the JSON text, never via float
            data = resp.json(parse_float=Decimal)
        except requests.RequestException as e:
            raise RateProviderError(f"Rate request {from_currency}->{to_currency} failed: {e}") from e
        except ValueError as e:
            raise RateProviderError(f"Rate response for {from_currency}->{to_currency} is not JSON") from e

        rates = data.get("rates") if isinstance(data, dict) else None
        rate = rates.get(to_currency) if isinstance(rates, dict) else None
        if isinstance(rate, bool) or not isinstance(rate, (Decimal, int)):
            raise RateProviderError(f"Rate response has no rate for {from_currency}->{to_currency}")

        logger.info("Fetched exchange rate %s->%s = %s", from_currency, to_currency, rate)
        return Decimal(rate)
