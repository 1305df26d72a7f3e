# crm_core/board_session.py
"""
Client-side Kanban drag controller.

Holds the board's customer list, tracks one drag at a time and turns a
drop into a move request. Drops are validated locally first so a denied
or no-op drop never reaches the network; valid drops are patched in
optimistically and the list is always re-fetched afterwards, so the
server stays authoritative.

The session is synchronous and single-threaded. Time and transport are
injected, which keeps it testable without a server.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from crm_core.board import BoardColumn, project_board
from crm_core.workflows import normalize_status
from crm_core.workflows.executor import METHOD_DRAG_DROP
from crm_core.workflows.validator import validate_transition

logger = logging.getLogger(__name__)


class DragState(enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DropOutcome(enum.Enum):
    NOOP = "noop"
    DENIED = "denied"
    MOVED = "moved"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingTransition:
    customer_id: str
    from_status: str
    to_status: str


class TransportError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, code: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


# ===============================================================
# Transports
# ===============================================================

class BoardTransport:
    """
    What the session needs from the server. Customers are plain dicts
    shaped like the customer API payload ("id", "status", "assigned_to", ...).
    """

    def fetch_customers(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def move_customer(self, customer_id: str, status: str, method: str) -> Dict[str, Any]:
        raise NotImplementedError


class HttpBoardTransport(BoardTransport):
    """
    Talks to the CRM API. `base_url` is the app root, e.g.
    "https://crm.example.se/crm".
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            }
        )

    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(str(exc), None, "network_error") from exc

        if resp.status_code >= 400:
            try:
                payload = resp.json()
            except ValueError:
                payload = {}
            if not isinstance(payload, dict):
                payload = {}
            detail = payload.get("detail") or f"HTTP {resp.status_code}"
            raise TransportError(str(detail), resp.status_code, payload.get("code", ""))

        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(
                f"Unreadable response (HTTP {resp.status_code})", resp.status_code, "bad_response"
            ) from exc

    def fetch_customers(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        url: Optional[str] = f"{self.base_url}/customers/?limit=200"
        while url:
            payload = self._request("GET", url)
            if isinstance(payload, list):
                out.extend(payload)
                break
            if not isinstance(payload, dict):
                raise TransportError("Unexpected customer list payload", None, "bad_response")
            out.extend(payload.get("results", []))
            url = payload.get("next")
        return out

    def move_customer(self, customer_id: str, status: str, method: str) -> Dict[str, Any]:
        payload = self._request(
            "PATCH",
            f"{self.base_url}/customers/{customer_id}/move/",
            json={"status": status, "method": method},
        )
        if not isinstance(payload, dict):
            return {}
        return payload.get("customer", {})


# ===============================================================
# Session
# ===============================================================

class BoardSession:
    def __init__(
        self,
        actor,
        transport: BoardTransport,
        error_ttl: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.actor = actor
        self.transport = transport
        self.error_ttl = error_ttl
        self.clock = clock

        self.customers: List[Dict[str, Any]] = []
        self.state = DragState.IDLE
        self.dragged_id: Optional[str] = None
        self.pending: Optional[PendingTransition] = None

        self._error: Optional[str] = None
        self._error_at = 0.0

    # -----------------------------------------------------------
    # Read side
    # -----------------------------------------------------------
    @property
    def columns(self) -> List[BoardColumn]:
        return project_board(self.customers, self.actor.role)

    @property
    def is_updating(self) -> bool:
        return self.pending is not None

    @property
    def error(self) -> Optional[str]:
        if self._error is not None and self.clock() - self._error_at >= self.error_ttl:
            self._error = None
        return self._error

    def _set_error(self, message: str) -> None:
        self._error = message
        self._error_at = self.clock()

    def _find(self, customer_id: Any) -> Optional[Dict[str, Any]]:
        key = str(customer_id)
        for c in self.customers:
            if str(c.get("id")) == key:
                return c
        return None

    def _replace(self, customer: Dict[str, Any]) -> None:
        key = str(customer.get("id"))
        self.customers = [customer if str(c.get("id")) == key else c for c in self.customers]

    # -----------------------------------------------------------
    # Operations
    # -----------------------------------------------------------
    def refresh(self) -> bool:
        """
        Re-fetch the customer list. On failure the previous list is kept
        and the error is surfaced.
        """
        try:
            self.customers = list(self.transport.fetch_customers())
        except TransportError as exc:
            logger.warning("Board refresh failed: %s", exc.message)
            self._set_error(exc.message)
            return False
        return True

    def start_drag(self, customer_id: Any) -> bool:
        if self.is_updating:
            return False
        if self._find(customer_id) is None:
            return False
        self.state = DragState.DRAGGING
        self.dragged_id = str(customer_id)
        return True

    def cancel_drag(self) -> None:
        self.state = DragState.IDLE
        self.dragged_id = None

    def drop(self, column_id: str) -> DropOutcome:
        if self.state is not DragState.DRAGGING or self.dragged_id is None:
            return DropOutcome.NOOP

        customer = self._find(self.dragged_id)
        self.cancel_drag()
        if customer is None:
            return DropOutcome.NOOP

        target = normalize_status(column_id)
        current = normalize_status(customer.get("status"))
        if target == current:
            return DropOutcome.NOOP

        decision = validate_transition(self.actor, customer, target)
        if not decision.allowed:
            self._set_error(decision.reason)
            return DropOutcome.DENIED

        customer_id = str(customer.get("id"))
        self.pending = PendingTransition(customer_id, current, target)
        self._replace({**customer, "status": target})

        outcome = DropOutcome.FAILED
        try:
            self.transport.move_customer(customer_id, target, METHOD_DRAG_DROP)
            outcome = DropOutcome.MOVED
        except TransportError as exc:
            logger.warning(
                "Move of customer %s (%s -> %s) failed: %s",
                customer_id, current, target, exc.message,
            )
            self._set_error(exc.message)
        finally:
            # The optimistic patch never survives the request, whatever was raised.
            self.pending = None
            if outcome is not DropOutcome.MOVED:
                self._replace(customer)
            self.refresh()
        return outcome
