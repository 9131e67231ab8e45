from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from fleetfeedback.domain.models import SubmissionKind

metadata = MetaData()

public_compliments = Table(
    "elogios_motoristas",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nome", String(255), nullable=False),
    Column("nome_motorista", String(255), nullable=False),
    Column("carreta", String(20), nullable=False, index=True),
    Column("telefone", String(30), nullable=False),
    Column("elogio", Text, nullable=False),
    Column("tipo", String(20)),
    Column("pontos", Integer),
    Column("latitude", String(40)),
    Column("longitude", String(40)),
    Column("maps_link", Text),
    Column("user_agent", Text),
    Column("cidade", String(255)),
    Column("estado", String(255)),
    Column("token_avaliador", String(100), index=True),
    Column("data_hora", DateTime),
)

incidents = Table(
    "ocorrencias_motoristas",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nome", String(255), nullable=False),
    Column("carreta", String(20), nullable=False, index=True),
    Column("telefone", String(30), nullable=False),
    Column("tipo_ocorrencia", String(100), nullable=False),
    Column("descricao", Text, nullable=False),
    Column("latitude", String(40)),
    Column("longitude", String(40)),
    Column("maps_link", Text),
    Column("user_agent", Text),
    Column("cidade", String(255)),
    Column("estado", String(255)),
    Column("data_hora", DateTime),
)

internal_compliments = Table(
    "elogios_internos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("matricula", String(30), nullable=False, index=True),
    Column("elogio", Text, nullable=False),
    Column("motorista", String(255)),
    Column("telefone", String(30), nullable=False),
    Column("latitude", String(40)),
    Column("longitude", String(40)),
    Column("maps_link", Text),
    Column("cidade", String(255)),
    Column("estado", String(255)),
    Column("data_hora", DateTime),
    Column("token_avaliador", String(100), index=True),
    Column("tipo", String(20)),
    Column("pontos", Integer),
)


@dataclass(frozen=True)
class TableLayout:
    """
    Назначение:
        Раскладка таблицы хранилища для вида отзыва: колонки ключа, токена и времени.
    """

    table: Table
    key_column: str
    token_column: str | None
    time_column: str = "data_hora"


LAYOUTS: dict[SubmissionKind, TableLayout] = {
    SubmissionKind.PUBLIC_COMPLIMENT: TableLayout(public_compliments, "carreta", "token_avaliador"),
    SubmissionKind.INCIDENT: TableLayout(incidents, "carreta", None),
    SubmissionKind.INTERNAL_COMPLIMENT: TableLayout(internal_compliments, "matricula", "token_avaliador"),
}


def ensure_schema(engine: Engine) -> None:
    """Создаёт таблицы хранилища отзывов (локальная среда и тесты)."""
    metadata.create_all(engine)
