from __future__ import annotations

import logging
import re
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event, text

from fleetfeedback.domain.assets.active_asset_checker import ActiveAssetChecker
from fleetfeedback.domain.models import PredicateColumns
from fleetfeedback.domain.resolution.column_resolver import ColumnResolver
from fleetfeedback.infra.db.identifiers import UnsafeIdentifierError, quote_identifier
from fleetfeedback.infra.db.sql_engine import SqlEngine
from fleetfeedback.infra.fleet.kmm_fleet_store import KmmFleetStore

PREDICATES = PredicateColumns(modality="modalidade", cancellation="data_cancelamento")


def _regexp_replace(value, pattern, replacement, flags):
    if value is None:
        return None
    return re.sub(pattern, replacement, value)


def _build_store(tmp_path: Path) -> KmmFleetStore:
    """SQLite с подключёнными схемами veiculo/folha вместо PostgreSQL."""
    veiculo = tmp_path / "veiculo.sqlite3"
    folha = tmp_path / "folha.sqlite3"
    engine = create_engine(f"sqlite:///{tmp_path / 'kmm.sqlite3'}")

    @event.listens_for(engine, "connect")
    def _attach(dbapi_conn, _record):
        dbapi_conn.execute("ATTACH DATABASE ? AS veiculo", (str(veiculo),))
        dbapi_conn.execute("ATTACH DATABASE ? AS folha", (str(folha),))
        dbapi_conn.create_function("regexp_replace", 4, _regexp_replace)

    with engine.begin() as conn:
        conn.execute(text(
            'CREATE TABLE veiculo.veiculo_modalidade ("PLACA" TEXT, "MODALIDADE" TEXT, "DATA_CANCELAMENTO" TEXT)'
        ))
        conn.execute(text(
            'CREATE TABLE veiculo.veiculo_motorista ('
            '"COD_PESSOA" INTEGER, placa_carreta TEXT, modalidade TEXT, data_cancelamento TEXT, '
            '"DATA_INICIO" TEXT, obs TEXT)'
        ))
        conn.execute(text(
            'CREATE TABLE folha.funcionario_dados ('
            '"COD_PESSOA" INTEGER, "MATRICULA" INTEGER, "NOME" TEXT, "CARGO" TEXT, '
            '"DATA_ADMISSAO" TEXT, "DATA_DEMISSAO" TEXT)'
        ))
        conn.execute(
            text('INSERT INTO veiculo.veiculo_modalidade VALUES (:p, :m, :c)'),
            [
                {"p": "abc-1234", "m": "FROTA", "c": None},
                {"p": "ABC1D23", "m": "frota", "c": None},
                {"p": "XYZ9876", "m": "frota", "c": "2023-05-01"},
                {"p": "QWE1A23", "m": "AGREGADO", "c": None},
            ],
        )
        conn.execute(
            text('INSERT INTO veiculo.veiculo_motorista VALUES (:cod, :plate, :m, :c, :start, :obs)'),
            [
                {"cod": 1, "plate": "abc 1234", "m": "Frota", "c": None, "start": "2024-01-10", "obs": "n/a"},
                {"cod": 2, "plate": "ABC1234", "m": "frota", "c": None, "start": None, "obs": None},
                {"cod": 3, "plate": "ABC-1234", "m": "frota", "c": None, "start": "2024-03-01", "obs": None},
                {"cod": 4, "plate": "ZZZ0000", "m": "frota", "c": "2024-01-01", "start": "2024-01-01", "obs": None},
            ],
        )
        conn.execute(
            text('INSERT INTO folha.funcionario_dados VALUES (:cod, :mat, :nome, :cargo, :adm, :dem)'),
            [
                {"cod": 1, "mat": 1001, "nome": "JOAO SILVA", "cargo": "Motorista Carreteiro", "adm": "2020-01-01", "dem": None},
                {"cod": 2, "mat": 1002, "nome": "PEDRO SOUZA", "cargo": "MOTORISTA", "adm": "2021-01-01", "dem": None},
                {"cod": 3, "mat": 1003, "nome": "CARLOS LIMA", "cargo": "MOTORISTA", "adm": "2019-01-01", "dem": "2024-02-15"},
                {"cod": 5, "mat": 1005, "nome": "ANA COSTA", "cargo": "ANALISTA", "adm": "2018-01-01", "dem": None},
                {"cod": 6, "mat": 1006, "nome": "BRUNO REIS", "cargo": "MOTORISTA TRUCK", "adm": None, "dem": None},
                {"cod": 7, "mat": 1007, "nome": None, "cargo": "MOTORISTA", "adm": "2022-01-01", "dem": None},
            ],
        )
    return KmmFleetStore(SqlEngine(engine, "fleet"))


def test_activation_requires_tag_and_no_cancellation(tmp_path: Path):
    store = _build_store(tmp_path)

    assert store.exists_active("ABC1234", "frota") is True
    assert store.exists_active("ABC1D23", "frota") is True
    assert store.exists_active("QWE1A23", "frota") is False
    assert store.exists_active("QWE1A23", "agregado") is True
    assert store.exists_active("NOP0000", "frota") is False


@pytest.mark.parametrize("tag", ["frota", "agregado", "FROTA", ""])
def test_cancelled_asset_is_never_active(tmp_path: Path, tag: str):
    store = _build_store(tmp_path)
    assert store.exists_active("XYZ9876", tag) is False


def test_catalog_lists_assignment_columns(tmp_path: Path):
    store = _build_store(tmp_path)

    columns = store.list_columns("veiculo", "veiculo_motorista")

    assert columns == ["COD_PESSOA", "placa_carreta", "modalidade", "data_cancelamento", "DATA_INICIO", "obs"]
    assert store.list_columns("veiculo", "missing_table") == []


def test_sample_values_only_from_active_assignments(tmp_path: Path):
    store = _build_store(tmp_path)

    values = store.sample_values("placa_carreta", PREDICATES, "frota", 50)

    assert sorted(values) == ["ABC-1234", "ABC1234", "abc 1234"]
    assert store.sample_values("obs", PREDICATES, "frota", 50) == ["n/a"]
    assert len(store.sample_values("placa_carreta", PREDICATES, "frota", 1)) == 1


def test_unsafe_identifier_never_reaches_sql(tmp_path: Path):
    store = _build_store(tmp_path)

    with pytest.raises(UnsafeIdentifierError):
        store.sample_values('placa_carreta" OR 1=1 --', PREDICATES, "frota", 50)
    with pytest.raises(UnsafeIdentifierError):
        store.find_assigned_operator("placa carreta", "ABC1234")


def test_quote_identifier():
    assert quote_identifier("PLACA_CARRETA") == '"PLACA_CARRETA"'
    with pytest.raises(UnsafeIdentifierError):
        quote_identifier("")


def test_operator_is_latest_assignment_of_employed_person(tmp_path: Path):
    store = _build_store(tmp_path)

    # COD_PESSOA 3 has the latest start but is dismissed; 2 has NULL start and sorts last
    assert store.find_assigned_operator("placa_carreta", "ABC1234") == "JOAO SILVA"
    assert store.find_assigned_operator("placa_carreta", "NOP0000") is None


def test_personnel_lookups(tmp_path: Path):
    store = _build_store(tmp_path)

    assert store.find_name_by_registration("1002") == "PEDRO SOUZA"
    assert store.find_name_by_registration("9999") is None

    drivers = store.list_active_drivers()
    assert [(d.registration, d.name) for d in drivers] == [("1001", "JOAO SILVA"), ("1002", "PEDRO SOUZA")]


def test_active_plates_search(tmp_path: Path):
    store = _build_store(tmp_path)

    assert store.list_active_plates("", 20, "frota") == ["ABC1234", "ABC1D23"]
    assert store.list_active_plates("ABC1D", 20, "frota") == ["ABC1D23"]
    assert store.list_active_plates("ABC", 1, "frota") == ["ABC1234"]


def test_resolver_and_checker_over_real_store(tmp_path: Path):
    store = _build_store(tmp_path)
    resolver = ColumnResolver(store, store, logging.getLogger("tests.kmm"), "test-run")
    checker = ActiveAssetChecker(store, store, resolver)

    assert resolver.resolve() == "placa_carreta"
    assert checker.exists_active_asset("ABC1234") is True
    assert checker.lookup_operator("ABC1234") == "JOAO SILVA"
