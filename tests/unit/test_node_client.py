"""
Tests for the Ergo node REST client and its failover manager.

HTTP is faked at `requests.request`; nothing leaves the process.
"""

import pytest
import requests

from rentbot.modules.storage_rent.errors import BroadcastError, SigningError, TransientIOError
from rentbot.shared.infrastructure.ergo_node import ErgoNodeClient
from rentbot.shared.infrastructure.node_manager import NodeConnectionManager


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class FakeHTTP:
    """Routes (method, path) to queued responses and records every call."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, path, *responses):
        self.routes[(method, path)] = list(responses)

    def __call__(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        path = url.split(":9053", 1)[1]
        responses = self.routes.get((method, path))
        if not responses:
            return FakeResponse(404)
        answer = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def http(monkeypatch):
    fake = FakeHTTP()
    monkeypatch.setattr(requests, "request", fake)
    return fake


@pytest.fixture
def manager():
    return NodeConnectionManager(["http://node-a:9053", "http://node-b:9053/"], api_key="secret")


@pytest.fixture
def client(manager):
    return ErgoNodeClient(manager)


class TestNodeConnectionManager:
    def test_requires_a_url(self):
        with pytest.raises(ValueError):
            NodeConnectionManager(["", ""])

    def test_urls_deduplicated_and_stripped(self):
        manager = NodeConnectionManager(["http://n:9053/", "http://n:9053", "http://m:9053"])
        assert manager.node_urls == ["http://n:9053", "http://m:9053"]

    def test_api_key_header_sent(self, http, manager):
        http.add("GET", "/info", FakeResponse(200, {"fullHeight": 1}))

        manager.request("GET", "/info")

        headers = http.calls[0][2]["headers"]
        assert headers["api_key"] == "secret"
        assert http.calls[0][2]["timeout"] == 10.0

    def test_network_error_switches_provider(self, http, manager):
        http.add("GET", "/info", requests.ConnectionError("refused"))

        with pytest.raises(TransientIOError):
            manager.request("GET", "/info")

        assert manager.get_active_url() == "http://node-b:9053"
        assert manager.stats["http://node-a:9053"]["errors"] == 1

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_server_errors_are_transient(self, http, manager, status):
        http.add("GET", "/info", FakeResponse(status))

        with pytest.raises(TransientIOError):
            manager.request("GET", "/info")

    def test_benchmark_picks_fastest_healthy_node(self, monkeypatch, manager):
        def fake_get(url, **kwargs):
            if "node-a" in url:
                raise requests.Timeout("slow")
            return FakeResponse(200, {"fullHeight": 1})

        monkeypatch.setattr(requests, "get", fake_get)

        assert manager.benchmark_providers() == "http://node-b:9053"


class TestErgoNodeClient:
    def test_current_height(self, http, client):
        http.add("GET", "/info", FakeResponse(200, {"fullHeight": 1_234_567}))
        assert client.current_height() == 1_234_567

    def test_unsynced_node_is_transient(self, http, client):
        http.add("GET", "/info", FakeResponse(200, {"fullHeight": None}))
        with pytest.raises(TransientIOError):
            client.current_height()

    def test_health_check_false_when_unreachable(self, http, client):
        http.add("GET", "/info", requests.ConnectionError("down"))
        assert client.health_check() is False

    def test_missing_box_is_none(self, http, client):
        assert client.box_by_id("ab" * 32) is None
        assert client.unspent_box("ab" * 32) is None

    def test_box_id_range_params(self, http, client):
        http.add("GET", "/blockchain/box/range", FakeResponse(200, ["01" * 32, "02" * 32]))

        assert client.box_id_range(1000, 2) == ["01" * 32, "02" * 32]
        assert http.calls[0][2]["params"] == {"offset": 1000, "limit": 2}

    def test_unspent_entries_paged(self, http, client):
        full_page = [{"boxId": f"{i:064x}"} for i in range(100)]
        http.add(
            "POST",
            "/blockchain/box/unspent/byAddress",
            FakeResponse(200, full_page),
            FakeResponse(200, [{"boxId": "ff" * 32}]),
        )

        entries = client.spendable_entries_for_address("9fAddress")

        assert len(entries) == 101
        assert [c[2]["params"]["offset"] for c in http.calls] == [0, 100]
        assert http.calls[0][2]["data"] == "9fAddress"
        assert http.calls[0][2]["headers"]["Content-Type"] == "text/plain"

    def test_address_to_tree(self, http, client):
        http.add("GET", "/script/addressToTree/9fAddress", FakeResponse(200, {"tree": "0008cd"}))
        assert client.address_to_tree("9fAddress") == "0008cd"

    def test_broadcast_returns_id(self, http, client):
        http.add("POST", "/transactions", FakeResponse(200, "ab" * 32))
        assert client.broadcast({"inputs": []}) == "ab" * 32

    def test_broadcast_rejected(self, http, client):
        http.add("POST", "/transactions", FakeResponse(400, {"error": 400}, text="Malformed transaction"))
        with pytest.raises(BroadcastError, match="Malformed"):
            client.broadcast({"inputs": []})

    def test_tx_status(self, http, client):
        http.add("GET", "/blockchain/transaction/byId/" + "ab" * 32, FakeResponse(200, {"numConfirmations": 3}))

        assert client.tx_status("ab" * 32) == {"confirmations": 3}
        assert client.tx_status("cd" * 32) is None

    def test_wallet_sign_refused(self, http, client):
        http.add("POST", "/wallet/transaction/sign", FakeResponse(400, text="Wallet is locked"))
        with pytest.raises(SigningError, match="locked"):
            client.sign_with_wallet({"inputs": []})


class TestLedgerProtocol:
    def test_live_and_mock_clients_satisfy_protocol(self, client):
        from rentbot.modules.storage_rent.ledger import LedgerClient
        from tests.mocks.mock_node import MockNodeClient

        assert isinstance(client, LedgerClient)
        assert isinstance(MockNodeClient(), LedgerClient)
