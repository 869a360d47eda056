"""Tests for the Frankfurter rate provider."""

import json
from decimal import Decimal

import pytest
import requests

from receiptflow.domain.errors import RateProviderError
from receiptflow.integrations.frankfurter import FrankfurterRateProvider


class StubResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self, **kwargs):
        return json.loads(self.text, **kwargs)


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def test_fetch_rate():
    session = StubSession(StubResponse('{"amount": 1.0, "base": "USD", "rates": {"GBP": 0.78912}}'))
    provider = FrankfurterRateProvider("https://fx.example/", timeout=3, session=session)

    rate = provider.fetch_rate("USD", "GBP")

    assert rate == Decimal("0.78912")
    assert session.requests == [("https://fx.example/latest", {"from": "USD", "to": "GBP"}, 3)]


@pytest.mark.parametrize(
    "session",
    [
        StubSession(error=requests.ConnectionError("refused")),
        StubSession(error=requests.Timeout("slow")),
        StubSession(StubResponse('{"message": "not found"}', status_code=404)),
        StubSession(StubResponse("<html>")),
        StubSession(StubResponse('{"rates": {}}')),
        StubSession(StubResponse('{"rates": {"GBP": "0.79"}}')),
    ],
)
def test_fetch_rate_failures_raise_provider_error(session):
    provider = FrankfurterRateProvider(session=session)

    with pytest.raises(RateProviderError):
        provider.fetch_rate("USD", "GBP")
