from __future__ import annotations

import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpx
import pytest

from fleetfeedback.domain.models import GeoLocation
from fleetfeedback.infra.geo.nominatim_enricher import NominatimGeoEnricher

LOGGER = logging.getLogger("tests.geo")


def _enricher(handler) -> NominatimGeoEnricher:
    return NominatimGeoEnricher(LOGGER, "test-run", transport=httpx.MockTransport(handler))


def test_reverse_geocode_success_prefers_city_then_town():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["ua"] = request.headers.get("user-agent")
        return httpx.Response(200, json={"address": {"town": "Cajamar", "state": "São Paulo"}})

    result = _enricher(handler).enrich("-23.35", "-46.87")

    assert result == GeoLocation(locality="Cajamar", region="São Paulo")
    assert seen["params"] == {"format": "json", "lat": "-23.35", "lon": "-46.87"}
    assert seen["ua"] == "fleetfeedback/1.0"


def test_http_error_yields_none(caplog):
    enricher = _enricher(lambda request: httpx.Response(500, text="boom"))
    with caplog.at_level(logging.WARNING, logger="tests.geo"):
        assert enricher.enrich(1.0, 2.0) is None
    assert any("reverse geocode failed" in r.getMessage() for r in caplog.records)


def test_invalid_json_yields_none():
    enricher = _enricher(lambda request: httpx.Response(200, text="<html>"))
    assert enricher.enrich(1.0, 2.0) is None


def test_timeout_yields_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    assert _enricher(handler).enrich(1.0, 2.0) is None


def test_missing_address_yields_none():
    enricher = _enricher(lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))
    assert enricher.enrich(1.0, 2.0) is None


class _DripHandler(BaseHTTPRequestHandler):
    body = b'{"address": {"city": "X", "state": "Y"}}'
    pause = 0.6

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        step = len(self.body) // 4 + 1
        try:
            for start in range(0, len(self.body), step):
                self.wfile.write(self.body[start:start + step])
                self.wfile.flush()
                time.sleep(self.pause)
        except OSError:
            pass

    def log_message(self, format, *args):
        pass


@pytest.fixture
def drip_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _DripHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/reverse"
    server.shutdown()
    server.server_close()


def test_slow_body_is_cut_at_overall_deadline(drip_server):
    # each chunk arrives well within the per-read timeout, the whole body does not
    enricher = NominatimGeoEnricher(LOGGER, "test-run", reverseUrl=drip_server, timeoutSeconds=1.0)

    started = time.monotonic()
    result = enricher.enrich(1.0, 2.0)
    elapsed = time.monotonic() - started
    enricher.close()

    assert result is None
    assert elapsed < 2.0


def test_fast_local_server_within_deadline(drip_server, monkeypatch):
    monkeypatch.setattr(_DripHandler, "pause", 0.0)
    enricher = NominatimGeoEnricher(LOGGER, "test-run", reverseUrl=drip_server, timeoutSeconds=2.0)

    assert enricher.enrich(1.0, 2.0) == GeoLocation(locality="X", region="Y")
    enricher.close()
