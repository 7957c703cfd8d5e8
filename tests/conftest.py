from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from api_config import FAVORITES_TABLE, PLANTS_TABLE


class FakeQuery:
    """Mimics the chained PostgREST builder: table().select().eq().order().execute()."""

    def __init__(self, client: FakeSupabase, table: str) -> None:
        self.client = client
        self.table = table
        self.action = None
        self.columns = "*"
        self.row = None
        self.filters: list[tuple[str, Any]] = []
        self.order_by = None

    def select(self, columns: str = "*") -> FakeQuery:
        self.action, self.columns = "select", columns
        return self

    def insert(self, row: dict) -> FakeQuery:
        self.action, self.row = "insert", row
        return self

    def delete(self) -> FakeQuery:
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any) -> FakeQuery:
        self.filters.append((column, value))
        return self

    def order(self, column: str) -> FakeQuery:
        self.order_by = column
        return self

    def _matches(self, row: dict) -> bool:
        return all(row.get(c) == v for c, v in self.filters)

    def execute(self) -> SimpleNamespace:
        self.client.calls.append((self.table, self.action, self.row, list(self.filters), self.order_by))
        error = self.client.errors.get((self.table, self.action))
        if error is not None:
            raise error

        rows = self.client.tables.setdefault(self.table, [])
        if self.action == "insert":
            rows.append(dict(self.row))
            return SimpleNamespace(data=[dict(self.row)])
        if self.action == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.client.tables[self.table] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=removed)

        selected = [r for r in rows if self._matches(r)]
        if self.order_by:
            selected = sorted(selected, key=lambda r: r.get(self.order_by))
        if self.columns != "*":
            wanted = [c.strip() for c in self.columns.split(",")]
            selected = [{c: r.get(c) for c in wanted} for r in selected]
        return SimpleNamespace(data=selected)


class FakeAuth:
    def __init__(self) -> None:
        self.session = None
        self.accounts: dict[str, str] = {}
        self.sign_out_calls = 0

    def _set_session(self, event: str, session) -> None:
        self.session = session

    def get_session(self):
        return self.session

    def sign_in_with_password(self, credentials: dict):
        if self.accounts.get(credentials["email"]) != credentials["password"]:
            raise RuntimeError("Invalid login credentials")
        user = SimpleNamespace(id=f"user-{credentials['email']}", email=credentials["email"])
        session = SimpleNamespace(user=user, access_token="token-123")
        self._set_session("SIGNED_IN", session)
        return SimpleNamespace(user=user, session=session)

    def sign_up(self, credentials: dict):
        self.accounts[credentials["email"]] = credentials["password"]
        user = SimpleNamespace(id=f"user-{credentials['email']}", email=credentials["email"])
        return SimpleNamespace(user=user, session=None)

    def sign_out(self) -> None:
        self.sign_out_calls += 1
        self._set_session("SIGNED_OUT", None)


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple] = []
        self.errors: dict[tuple[str, str], Exception] = {}
        self.auth = FakeAuth()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def sign_in_as(self, user_id: str, email: str = "grower@example.com") -> None:
        user = SimpleNamespace(id=user_id, email=email)
        self.auth._set_session("SIGNED_IN", SimpleNamespace(user=user, access_token="token-abc"))


class FakeBackend:
    """Stands in for EdgeFunctionsClient / GeminiConsultant."""

    def __init__(self, reply: str | None = "Chamomile tea can help with sleep.",
                 insights: str | None = "Rich in apigenin.", error: Exception | None = None) -> None:
        self.reply = reply
        self.insights = insights
        self.error = error
        self.consult_calls: list[tuple] = []
        self.analyze_calls: list[tuple] = []

    def consult(self, message, history, access_token=None):
        self.consult_calls.append((message, history, access_token))
        if self.error:
            raise self.error
        return self.reply

    def analyze_plant(self, plant, access_token=None):
        self.analyze_calls.append((plant, access_token))
        if self.error:
            raise self.error
        return self.insights


PLANT_ROWS = [
    {
        "id": "p-turmeric",
        "name": "Turmeric",
        "scientific_name": "Curcuma longa",
        "category": "Anti-inflammatory",
        "description": "Golden rhizome used in Ayurveda.",
        "medical_uses": ["Inflammation", "Digestive health", "Joint pain", "Skin care"],
        "active_compounds": ["Curcumin"],
        "image_url": "https://example.com/turmeric.jpg",
    },
    {
        "id": "p-aloe",
        "name": "Aloe Vera",
        "scientific_name": "Aloe barbadensis miller",
        "category": "Skin care",
        "description": "Succulent with soothing gel.",
        "medical_uses": ["Burns", "Wound healing"],
        "active_compounds": ["Aloin", "Acemannan"],
        "image_url": "https://example.com/aloe.jpg",
    },
    {
        "id": "p-chamomile",
        "name": "Chamomile",
        "scientific_name": "Matricaria chamomilla",
        "category": "Calming",
        "description": "Daisy-like flower brewed as tea.",
        "medical_uses": ["Sleep", "Anxiety"],
        "active_compounds": None,
        "image_url": None,
    },
]


@pytest.fixture()
def supabase_client() -> FakeSupabase:
    client = FakeSupabase()
    client.tables[PLANTS_TABLE] = [dict(r) for r in PLANT_ROWS]
    client.tables[FAVORITES_TABLE] = []
    return client


@pytest.fixture()
def signed_in_client(supabase_client: FakeSupabase) -> FakeSupabase:
    supabase_client.sign_in_as("user-1")
    return supabase_client


@pytest.fixture()
def state() -> dict:
    from ui_state import init_state

    session_state: dict = {}
    init_state(session_state)
    return session_state


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def make_backend() -> type[FakeBackend]:
    return FakeBackend
