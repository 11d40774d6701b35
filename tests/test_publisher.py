"""
Tests for the HTTP snapshot publisher.
"""

import asyncio
import json

from aiohttp import test_utils

from backendstatus.models import KIND_FINISHED, KIND_STARTED, Update
from backendstatus.publisher import create_app
from backendstatus.registry import Registry

BACKEND = "10.0.0.1:80"
SENDER = "192.168.1.5:40000"


def _client(registry):
    return test_utils.TestClient(test_utils.TestServer(create_app(registry)))


def _request(registry, method, path):
    """Issue one request against the app; returns (status, headers, body)."""

    async def go():
        async with _client(registry) as client:
            resp = await client.request(method, path)
            return resp.status, resp.headers, await resp.read()

    return asyncio.run(go())


def _populated_registry():
    registry = Registry(clock=lambda: 123)
    registry.apply(Update(1, BACKEND, KIND_STARTED, uri="/a"), SENDER)
    registry.apply(Update(2, BACKEND, KIND_STARTED, uri="/b"), SENDER)
    registry.apply(Update(2, BACKEND, KIND_FINISHED, elapsed=0.25, status=502), SENDER)
    return registry


class TestWorldEndpoint:
    def test_returns_registry_as_json(self):
        async def go():
            async with _client(_populated_registry()) as client:
                resp = await client.get("/world.json")
                assert resp.status == 200
                assert resp.content_type == "application/json"
                return await resp.json()

        doc = asyncio.run(go())
        assert doc["CurrentTime"] == 123
        backend = doc["World"][BACKEND]
        assert list(backend["InFlight"][SENDER]) == ["1"]
        assert backend["Completed"][0]["ResponseCode"] == 502
        assert backend["Completed"][0]["Time"] == 0.25

    def test_cors_headers(self):
        status, headers, _ = _request(Registry(), "GET", "/world.json")
        assert status == 200
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert headers["Access-Control-Max-Age"] == "3600"

    def test_preflight(self):
        status, headers, body = _request(Registry(), "OPTIONS", "/world.json")
        assert status == 204
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert headers["Access-Control-Max-Age"] == "3600"
        assert body == b""

    def test_does_not_mutate_registry(self):
        registry = _populated_registry()
        before = registry.snapshot().to_dict()["World"]
        _request(registry, "GET", "/world.json")
        assert registry.snapshot().to_dict()["World"] == before

    def test_unknown_path(self):
        status, _, _ = _request(Registry(), "GET", "/nope")
        assert status == 404


class _BadSnapshot:
    def to_dict(self):
        return {"CurrentTime": object()}


class TestSerializationFault:
    def test_returns_500_and_keeps_serving(self, capsys):
        registry = Registry()
        registry.snapshot = lambda: _BadSnapshot()

        status, headers, _ = _request(registry, "GET", "/world.json")
        assert status == 500
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert "Error writing JSON" in capsys.readouterr().out

        del registry.snapshot
        status, _, _ = _request(registry, "GET", "/world.json")
        assert status == 200


def _reject_constant(token):
    raise ValueError(f"non-standard JSON constant {token}")


class TestStrictJson:
    def test_output_has_no_non_standard_constants(self):
        _, _, body = _request(_populated_registry(), "GET", "/world.json")
        doc = json.loads(body, parse_constant=_reject_constant)
        assert doc["World"][BACKEND]["Completed"][0]["Time"] == 0.25

    def test_non_finite_value_is_a_server_error(self, capsys):
        registry = Registry()
        registry.apply(Update(1, BACKEND, KIND_STARTED, uri="/a"), SENDER)
        registry.apply(Update(1, BACKEND, KIND_FINISHED, elapsed=float("inf"), status=200), SENDER)

        status, _, body = _request(registry, "GET", "/world.json")
        assert status == 500
        assert b"Infinity" not in body
        assert "Error writing JSON" in capsys.readouterr().out


class TestHealthEndpoint:
    def test_reports_backend_count(self):
        async def go():
            async with _client(_populated_registry()) as client:
                resp = await client.get("/health")
                return await resp.json()

        assert asyncio.run(go()) == {"status": "healthy", "backends": 1}
