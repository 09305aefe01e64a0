# pytest libs/tests/test_location_resolver.py -q

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from common.errors import UpstreamUnavailableError
from libs.location_resolver import LocationInfo, NominatimResolver

pytestmark = pytest.mark.unit


class DummyResponse:
    def __init__(self, payload=None, status_code: int = 200, bad_json: bool = False):
        self._payload = payload
        self.status_code = status_code
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError(
                "boom",
                request=SimpleNamespace(url="http://test"),
                response=SimpleNamespace(status_code=self.status_code),
            )

    def json(self):
        if self.bad_json:
            raise ValueError("Expecting value")
        return self._payload


NOMINATIM_PAYLOAD = {
    "type": "house",
    "display_name": "Times Square, Manhattan, New York, United States",
    "address": {
        "country": "United States",
        "town": "New York",
        "neighbourhood": "Midtown",
        "road": "7th Avenue",
    },
}


def _resolver_returning(response) -> NominatimResolver:
    resolver = NominatimResolver(base_url="http://nominatim.test/reverse")
    resolver.client = SimpleNamespace(get=AsyncMock(return_value=response), aclose=AsyncMock())
    return resolver


def test_unknown_placeholder():
    info = LocationInfo.unknown().to_dict()
    assert info == {
        "country": "Unknown",
        "city": "Unknown",
        "suburb": "Unknown",
        "road": "Unknown",
        "type": "unknown",
        "display_name": "Unknown Location",
    }


def test_from_nominatim_falls_back_through_address_fields():
    info = LocationInfo.from_nominatim(NOMINATIM_PAYLOAD)
    assert info.city == "New York"
    assert info.suburb == "Midtown"
    assert info.road == "7th Avenue"
    assert info.type == "house"


@pytest.mark.asyncio
async def test_reverse_geocode_success():
    resolver = _resolver_returning(DummyResponse(NOMINATIM_PAYLOAD))
    info = await resolver.reverse_geocode(40.758, -73.985)

    assert info.country == "United States"
    resolver.client.get.assert_awaited_once()
    _, kwargs = resolver.client.get.call_args
    assert kwargs["params"] == {"format": "json", "lat": 40.758, "lon": -73.985}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [DummyResponse(status_code=503), DummyResponse(bad_json=True)],
)
async def test_reverse_geocode_failures_raise_upstream_unavailable(response):
    resolver = _resolver_returning(response)
    with pytest.raises(UpstreamUnavailableError) as exc:
        await resolver.reverse_geocode(0, 0)
    assert exc.value.source == "nominatim"


@pytest.mark.asyncio
async def test_reverse_geocode_transport_error():
    resolver = NominatimResolver(base_url="http://nominatim.test/reverse")
    resolver.client = SimpleNamespace(
        get=AsyncMock(side_effect=httpx.ConnectTimeout("timed out")), aclose=AsyncMock()
    )
    with pytest.raises(UpstreamUnavailableError):
        await resolver.reverse_geocode(0, 0)
