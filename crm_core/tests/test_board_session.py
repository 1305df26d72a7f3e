# crm_core/tests/test_board_session.py

from __future__ import annotations

from typing import Any, Dict, List

import pytest
import requests

from crm_core.board_session import (
    BoardSession,
    BoardTransport,
    DragState,
    DropOutcome,
    HttpBoardTransport,
    TransportError,
)
from crm_core.identity import Actor


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class FakeTransport(BoardTransport):
    """
    In-memory server: applies moves to its own list so re-fetches
    return the authoritative state.
    """

    def __init__(self, customers: List[Dict[str, Any]]):
        self.server = [dict(c) for c in customers]
        self.moves: List[tuple] = []
        self.fetches = 0
        self.fail_move: Exception | None = None
        self.fail_fetch: TransportError | None = None
        self.seen_during_move: List[Dict[str, Any]] = []
        self.session: BoardSession | None = None

    def fetch_customers(self):
        self.fetches += 1
        if self.fail_fetch:
            raise self.fail_fetch
        return [dict(c) for c in self.server]

    def move_customer(self, customer_id, status, method):
        self.moves.append((customer_id, status, method))
        if self.session is not None:
            self.seen_during_move = [dict(c) for c in self.session.customers]
            assert self.session.is_updating
            assert self.session.start_drag(customer_id) is False
        if self.fail_move:
            raise self.fail_move
        for c in self.server:
            if c["id"] == customer_id:
                c["status"] = status
                return dict(c)
        raise TransportError("Customer not found.", 404, "not_found")


SELLER = Actor(id=1, role="salesperson", name="Sara")


def _session(customers, actor=SELLER, **kwargs):
    transport = FakeTransport(customers)
    clock = FakeClock()
    session = BoardSession(actor, transport, clock=clock, **kwargs)
    transport.session = session
    session.refresh()
    return session, transport, clock


def _status_of(session, customer_id):
    return next(c["status"] for c in session.customers if c["id"] == customer_id)


def test_refresh_and_columns():
    session, transport, _ = _session(
        [{"id": "c1", "status": "not_handled", "assigned_to": 1}]
    )
    assert transport.fetches == 1
    cols = {c.id: c for c in session.columns}
    assert cols["not_handled"].count == 1
    assert session.state is DragState.IDLE


def test_valid_drop_moves_optimistically_then_refetches():
    session, transport, _ = _session([{"id": "c1", "status": "not_handled", "assigned_to": 1}])

    assert session.start_drag("c1") is True
    assert session.state is DragState.DRAGGING

    outcome = session.drop("meeting_booked")

    assert outcome is DropOutcome.MOVED
    assert transport.moves == [("c1", "meeting_booked", "kanban_drag_drop")]
    # optimistic patch was visible while the request was in flight
    assert transport.seen_during_move[0]["status"] == "meeting_booked"
    assert transport.fetches == 2
    assert _status_of(session, "c1") == "meeting_booked"
    assert session.state is DragState.IDLE
    assert session.is_updating is False
    assert session.error is None


def test_drop_on_same_column_is_noop_without_network():
    session, transport, _ = _session([{"id": "c1", "status": "call_again", "assigned_to": 1}])
    session.start_drag("c1")

    assert session.drop("call_again") is DropOutcome.NOOP
    assert transport.moves == []
    assert transport.fetches == 1


def test_denied_drop_sets_error_without_network():
    session, transport, _ = _session([{"id": "c1", "status": "not_handled", "assigned_to": 1}])
    session.start_drag("c1")

    assert session.drop("sold") is DropOutcome.DENIED
    assert transport.moves == []
    assert "cannot move" in session.error
    assert _status_of(session, "c1") == "not_handled"


def test_drop_on_someone_elses_customer_is_denied_locally():
    session, transport, _ = _session([{"id": "c1", "status": "not_handled", "assigned_to": 2}])
    session.start_drag("c1")

    assert session.drop("no_answer") is DropOutcome.DENIED
    assert session.error == "You can only move customers assigned to you"
    assert transport.moves == []


def test_failed_move_rolls_back_and_refetches():
    session, transport, _ = _session([{"id": "c1", "status": "not_handled", "assigned_to": 1}])
    transport.fail_move = TransportError("Failed to update customer status.", 500, "persistence_failed")
    session.start_drag("c1")

    assert session.drop("no_answer") is DropOutcome.FAILED
    assert _status_of(session, "c1") == "not_handled"
    assert transport.fetches == 2
    assert session.error == "Failed to update customer status."
    assert session.is_updating is False


def test_failed_move_and_failed_refetch_keeps_rolled_back_list():
    session, transport, _ = _session([{"id": "c1", "status": "not_handled", "assigned_to": 1}])
    transport.fail_move = TransportError("timeout", None, "network_error")
    transport.fail_fetch = TransportError("offline", None, "network_error")
    session.start_drag("c1")

    assert session.drop("no_answer") is DropOutcome.FAILED
    assert _status_of(session, "c1") == "not_handled"
    assert session.error == "offline"


def test_unexpected_move_error_still_rolls_back_and_refetches():
    session, transport, _ = _session([{"id": "c1", "status": "not_handled", "assigned_to": 1}])
    transport.fail_move = RuntimeError("boom")
    session.start_drag("c1")

    with pytest.raises(RuntimeError):
        session.drop("no_answer")

    assert _status_of(session, "c1") == "not_handled"
    assert transport.fetches == 2
    assert session.is_updating is False


def test_error_expires_after_ttl():
    session, _, clock = _session([{"id": "c1", "status": "not_handled", "assigned_to": 1}], error_ttl=5.0)
    session.start_drag("c1")
    session.drop("sold")
    assert session.error

    clock.now += 4.9
    assert session.error
    clock.now += 0.2
    assert session.error is None


def test_drop_without_drag_is_noop():
    session, transport, _ = _session([{"id": "c1", "status": "not_handled", "assigned_to": 1}])
    assert session.drop("no_answer") is DropOutcome.NOOP
    assert transport.moves == []


def test_cancel_drag():
    session, transport, _ = _session([{"id": "c1", "status": "not_handled", "assigned_to": 1}])
    session.start_drag("c1")
    session.cancel_drag()
    assert session.state is DragState.IDLE
    assert session.drop("no_answer") is DropOutcome.NOOP


def test_start_drag_on_unknown_customer_is_refused():
    session, _, _ = _session([])
    assert session.start_drag("missing") is False
    assert session.state is DragState.IDLE


# ---------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------

class _FakeResponse:
    def __init__(self, status_code: int, payload: Any):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeHttpSession:
    def __init__(self, responses):
        self.headers: Dict[str, str] = {}
        self.responses = list(responses)
        self.calls: List[tuple] = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def test_http_transport_follows_pages_and_sends_token():
    http = _FakeHttpSession(
        [
            _FakeResponse(200, {"results": [{"id": "a"}], "next": "https://crm.test/crm/customers/?page=2"}),
            _FakeResponse(200, {"results": [{"id": "b"}], "next": None}),
        ]
    )
    transport = HttpBoardTransport("https://crm.test/crm/", "tok", session=http)

    assert [c["id"] for c in transport.fetch_customers()] == ["a", "b"]
    assert http.headers["Authorization"] == "Bearer tok"
    assert http.calls[0][1] == "https://crm.test/crm/customers/?limit=200"
    assert http.calls[0][2]["timeout"] == 15


def test_http_transport_move_maps_error_payload():
    http = _FakeHttpSession(
        [_FakeResponse(403, {"detail": "You can only move customers assigned to you", "code": "not_owner"})]
    )
    transport = HttpBoardTransport("https://crm.test/crm", "tok", session=http)

    with pytest.raises(TransportError) as exc:
        transport.move_customer("c1", "sold", "kanban_drag_drop")

    assert exc.value.status_code == 403
    assert exc.value.code == "not_owner"
    method, url, kwargs = http.calls[0]
    assert method == "PATCH"
    assert url == "https://crm.test/crm/customers/c1/move/"
    assert kwargs["json"] == {"status": "sold", "method": "kanban_drag_drop"}


def test_http_transport_network_error():
    http = _FakeHttpSession([requests.ConnectionError("refused")])
    transport = HttpBoardTransport("https://crm.test/crm", "tok", session=http)

    with pytest.raises(TransportError) as exc:
        transport.fetch_customers()

    assert exc.value.status_code is None
    assert exc.value.code == "network_error"


def test_http_transport_non_json_error_body():
    http = _FakeHttpSession([_FakeResponse(502, ValueError("no json"))])
    transport = HttpBoardTransport("https://crm.test/crm", "tok", session=http)

    with pytest.raises(TransportError) as exc:
        transport.move_customer("c1", "sold", "manual")

    assert exc.value.message == "HTTP 502"


def test_http_transport_unreadable_success_body():
    http = _FakeHttpSession([_FakeResponse(200, ValueError("no json"))])
    transport = HttpBoardTransport("https://crm.test/crm", "tok", session=http)

    with pytest.raises(TransportError) as exc:
        transport.move_customer("c1", "meeting_booked", "kanban_drag_drop")

    assert exc.value.status_code == 200
    assert exc.value.code == "bad_response"


def test_unreadable_move_response_reconciles_board():
    http = _FakeHttpSession(
        [
            _FakeResponse(200, {"results": [{"id": "c1", "status": "not_handled", "assigned_to": 1}], "next": None}),
            _FakeResponse(200, ValueError("html from a proxy")),
            _FakeResponse(200, {"results": [{"id": "c1", "status": "meeting_booked", "assigned_to": 1}], "next": None}),
        ]
    )
    session = BoardSession(SELLER, HttpBoardTransport("https://crm.test/crm", "tok", session=http), clock=FakeClock())
    session.refresh()
    session.start_drag("c1")

    assert session.drop("meeting_booked") is DropOutcome.FAILED
    assert [call[0] for call in http.calls] == ["GET", "PATCH", "GET"]
    assert _status_of(session, "c1") == "meeting_booked"
    assert session.error == "Unreadable response (HTTP 200)"
    assert session.is_updating is False
