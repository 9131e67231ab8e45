from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from fleetfeedback.api.app import INTERNAL_ERROR_MESSAGE, create_app
from fleetfeedback.config import Settings
from fleetfeedback.domain.exceptions import UpstreamUnavailable
from fleetfeedback.domain.models import ActiveDriver, GeoLocation
from fleetfeedback.infra.db.sql_engine import SqlEngine
from fleetfeedback.infra.submissions.schema import ensure_schema, incidents, internal_compliments, public_compliments
from fleetfeedback.infra.submissions.sql_submission_store import SqlSubmissionStore
from fleetfeedback.runtime import build_runtime

TZ = ZoneInfo("America/Sao_Paulo")
LOGGER = logging.getLogger("tests.api")


class MutableClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int) -> None:
        self.now = self.now + timedelta(days=days)


class DummyFleet:
    def __init__(self):
        self.active = {"ABC1234", "ABC1D23"}
        self.assignments = {"ABC1234": "JOAO SILVA"}
        self.personnel = {"1001": "PEDRO SOUZA"}
        self.unavailable = False
        self.personnel_down = False
        self.directory_crash = False
        self.plate_queries: list[tuple[str, int, str]] = []

    def list_columns(self, schema, table):
        return ["COD_PESSOA", "placa_carreta", "modalidade", "data_cancelamento"]

    def sample_values(self, column, predicates, activation_tag, limit):
        return ["ABC-1234"] if column == "placa_carreta" else []

    def exists_active(self, key, activation_tag):
        if self.unavailable:
            raise UpstreamUnavailable("fleet", "fleet store unavailable: OperationalError")
        return key in self.active

    def find_assigned_operator(self, plate_column, key):
        assert plate_column == "placa_carreta"
        return self.assignments.get(key)

    def find_name_by_registration(self, registration):
        if self.personnel_down:
            raise UpstreamUnavailable("fleet")
        return self.personnel.get(registration)

    def list_active_drivers(self):
        if self.directory_crash:
            raise RuntimeError("driver listing exploded")
        return [ActiveDriver(registration=k, name=v) for k, v in sorted(self.personnel.items())]

    def list_active_plates(self, prefix, limit, activation_tag):
        self.plate_queries.append((prefix, limit, activation_tag))
        return sorted(p for p in self.active if p.startswith(prefix))[:limit]


class SpySubmissionStore(SqlSubmissionStore):
    def __init__(self, db):
        super().__init__(db)
        self.exists_calls = 0

    def exists_since(self, kind, key, actor_token, cutoff):
        self.exists_calls += 1
        return super().exists_since(kind, key, actor_token, cutoff)


class DummyEnricher:
    def __init__(self):
        self.calls: list[tuple] = []

    def enrich(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        return GeoLocation(locality="Cajamar", region="São Paulo")


class Harness:
    def __init__(self, tmp_path: Path):
        db = SqlEngine.from_url(f"sqlite:///{tmp_path / 'submissions.sqlite3'}", "submissions")
        ensure_schema(db.engine)
        self.store = SpySubmissionStore(db)
        self.fleet = DummyFleet()
        self.enricher = DummyEnricher()
        self.clock = MutableClock(datetime(2024, 3, 20, 9, 0, tzinfo=TZ))
        self.runtime = build_runtime(
            Settings(build_tag="build-42"),
            LOGGER,
            "test-run",
            self.fleet,
            self.store,
            self.enricher,
            clock=self.clock,
        )
        self.client = TestClient(create_app(self.runtime))

    def rows(self, table):
        return self.store.db.fetchall(select(table))


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)


def _compliment(**overrides):
    body = {
        "author_name": "Ana",
        "plate": "abc-1234",
        "phone": "(11) 98765-4321",
        "message": "Dirigiu com muito cuidado",
    }
    body.update(overrides)
    return body


def test_compliment_window_end_to_end(harness: Harness):
    headers = {"X-Evaluator-Token": "  TOK-1 "}

    first = harness.client.post("/compliments", json=_compliment(), headers=headers)
    assert first.status_code == 200
    assert first.json()["status"] == "success"
    assert first.headers["X-App-Build"] == "build-42"

    again = harness.client.post("/compliments", json=_compliment(plate="ABC 1234"), headers=headers)
    assert again.status_code == 409
    assert again.json()["status"] == "blocked"
    assert again.json()["code"] == "DUPLICATE_SUBMISSION"

    harness.clock.advance(8)
    later = harness.client.post("/compliments", json=_compliment(), headers=headers)
    assert later.status_code == 200

    rows = harness.rows(public_compliments)
    assert len(rows) == 2
    assert {r["carreta"] for r in rows} == {"ABC1234"}
    assert {r["token_avaliador"] for r in rows} == {"tok-1"}
    assert rows[0]["nome_motorista"] == "JOAO SILVA"
    assert rows[0]["tipo"] == "Externo"
    assert rows[0]["pontos"] == 1


def test_unknown_plate_is_rejected_before_duplicate_check(harness: Harness):
    resp = harness.client.post(
        "/compliments", json=_compliment(plate="NOP-0000"), headers={"X-Evaluator-Token": "tok-1"}
    )

    assert resp.status_code == 404
    assert resp.json() == {
        "status": "error",
        "message": "Trailer not found or inactive.",
        "code": "NOT_FOUND_OR_INACTIVE",
    }
    assert harness.store.exists_calls == 0
    assert harness.rows(public_compliments) == []


def test_missing_token_and_fields_are_validation_errors(harness: Harness):
    no_token = harness.client.post("/compliments", json=_compliment())
    assert no_token.status_code == 400
    assert no_token.json()["message"] == "Evaluator token is missing."

    blank = harness.client.post("/compliments", json=_compliment(message="   "), headers={"X-Evaluator-Token": "t"})
    assert blank.status_code == 400
    assert blank.json()["code"] == "VALIDATION_ERROR"


def test_explicit_driver_name_and_location_are_stored(harness: Harness):
    resp = harness.client.post(
        "/compliments",
        json=_compliment(plate="ABC1D23", driver_name="Marcos", latitude=-23.35, longitude="-46.87", user_agent="UA/1"),
        headers={"X-Evaluator-Token": "tok-9"},
    )

    assert resp.status_code == 200
    row = harness.rows(public_compliments)[0]
    assert row["nome_motorista"] == "Marcos"
    assert row["latitude"] == "-23.35"
    assert row["cidade"] == "Cajamar"
    assert row["estado"] == "São Paulo"
    assert row["user_agent"] == "UA/1"
    assert harness.enricher.calls == [("-23.35", "-46.87")]


def test_compliment_without_any_driver_is_rejected(harness: Harness):
    resp = harness.client.post("/compliments", json=_compliment(plate="ABC1D23"), headers={"X-Evaluator-Token": "t"})
    assert resp.status_code == 400
    assert harness.rows(public_compliments) == []


def test_fleet_outage_is_not_reported_as_inactive(harness: Harness):
    harness.fleet.unavailable = True

    resp = harness.client.post("/compliments", json=_compliment(), headers={"X-Evaluator-Token": "t"})

    assert resp.status_code == 500
    assert resp.json()["message"] == INTERNAL_ERROR_MESSAGE
    assert resp.json()["code"] == "UPSTREAM_UNAVAILABLE"


def test_incident_needs_active_plate_but_no_token(harness: Harness):
    body = {
        "author_name": "Ana",
        "plate": "abc1234",
        "phone": "11987654321",
        "incident_type": "Excesso de velocidade",
        "description": "Na Anhanguera",
    }
    ok = harness.client.post("/incidents", json=body)
    dup = harness.client.post("/incidents", json=body)
    assert ok.status_code == 200
    assert dup.status_code == 200
    assert len(harness.rows(incidents)) == 2

    missing = harness.client.post("/incidents", json={**body, "plate": "NOP0000"})
    assert missing.status_code == 404
    assert missing.json()["message"] == "Plate not found in the fleet registry."


def test_internal_compliment_rules(harness: Harness):
    body = {"registration": 1001, "message": "Pontual", "author_name": "Supervisor", "phone": "11 98765-4321"}
    headers = {"X-Evaluator-Token": "tok-1"}

    bad_phone = harness.client.post("/compliments/internal", json={**body, "phone": "12345"}, headers=headers)
    assert bad_phone.status_code == 400

    ok = harness.client.post("/compliments/internal", json=body, headers=headers)
    assert ok.status_code == 200
    assert ok.json()["message"] == "Internal compliment saved."

    dup = harness.client.post("/compliments/internal", json=body, headers=headers)
    assert dup.status_code == 409

    harness.fleet.personnel_down = True
    other = harness.client.post("/compliments/internal", json={**body, "registration": "2002"}, headers=headers)
    assert other.status_code == 200

    rows = harness.rows(internal_compliments)
    assert [(r["matricula"], r["motorista"], r["pontos"]) for r in rows] == [
        ("1001", "PEDRO SOUZA", 2),
        ("2002", "Desconhecido", 2),
    ]
    assert rows[0]["telefone"] == "11987654321"


def test_directory_endpoints(harness: Harness):
    drivers = harness.client.get("/drivers/active")
    assert drivers.json() == [{"registration": "1001", "name": "PEDRO SOUZA"}]

    plates = harness.client.get("/trailers/active", params={"q": "abc-1d", "limit": "999"})
    assert plates.json() == [{"plate": "ABC1D23"}]
    assert harness.fleet.plate_queries == [("ABC1D", 50, "frota")]

    harness.client.get("/trailers/active", params={"limit": "abc"})
    assert harness.fleet.plate_queries[-1] == ("", 20, "frota")


def test_numeric_phone_and_plate_are_accepted_as_text(harness: Harness):
    resp = harness.client.post(
        "/incidents",
        json={
            "author_name": "Ana",
            "plate": "ABC1234",
            "phone": 11987654321,
            "incident_type": "Freada brusca",
            "description": "Na rotatória",
        },
    )
    assert resp.status_code == 200

    internal = harness.client.post(
        "/compliments/internal",
        json={"registration": 1001, "message": "Pontual", "author_name": "Sup", "phone": 11987654321},
        headers={"X-Evaluator-Token": "tok-1"},
    )
    assert internal.status_code == 200

    numeric_plate = harness.client.post(
        "/compliments", json=_compliment(plate=1234, phone=1187654321), headers={"X-Evaluator-Token": "tok-1"}
    )
    assert numeric_plate.status_code == 404

    assert harness.rows(incidents)[0]["telefone"] == "11987654321"
    assert harness.rows(internal_compliments)[0]["telefone"] == "11987654321"


def test_malformed_body_gets_validation_error_shape(harness: Harness):
    garbage = harness.client.post(
        "/incidents", content=b"not json", headers={"content-type": "application/json"}
    )
    assert garbage.status_code == 400
    assert garbage.json() == {"status": "error", "message": "Invalid request body.", "code": "VALIDATION_ERROR"}
    assert garbage.headers["X-App-Build"] == "build-42"

    wrong_type = harness.client.post(
        "/compliments", json=_compliment(phone=["11", "98765"]), headers={"X-Evaluator-Token": "t"}
    )
    assert wrong_type.status_code == 400
    assert wrong_type.json()["code"] == "VALIDATION_ERROR"
    assert harness.rows(public_compliments) == []


def test_unexpected_crash_keeps_error_shape_and_build_header(harness: Harness):
    harness.fleet.directory_crash = True

    resp = harness.client.get("/drivers/active")

    assert resp.status_code == 500
    assert resp.json() == {"status": "error", "message": INTERNAL_ERROR_MESSAGE, "code": "UNEXPECTED_ERROR"}
    assert resp.headers["X-App-Build"] == "build-42"
