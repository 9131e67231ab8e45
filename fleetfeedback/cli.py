from __future__ import annotations

import logging

import typer
import uvicorn

from fleetfeedback.api.app import create_app
from fleetfeedback.common.run_id import generate_run_id
from fleetfeedback.common.sanitize import maskDatabaseUrl
from fleetfeedback.config import Settings, load_settings
from fleetfeedback.domain.exceptions import ColumnResolutionError, UpstreamUnavailable
from fleetfeedback.domain.plates import is_plate_shaped, normalize
from fleetfeedback.infra.db.sql_engine import SqlEngine
from fleetfeedback.infra.logging.setup import createCommandLogger, createServiceLogger, logEvent, mapLogLevel
from fleetfeedback.infra.submissions.schema import ensure_schema
from fleetfeedback.runtime import ServiceRuntime, build_runtime_from_settings

app = typer.Typer(no_args_is_help=True, add_completion=False)


def printRunHeader(runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    """
    Назначение:
        Печатает безопасную сводку параметров запуска (пароли в URL скрыты).
    """
    typer.echo(
        f"run_id={runId} command={command} "
        f"fleet_db_url={maskDatabaseUrl(settings.fleet_db_url)} "
        f"submissions_db_url={maskDatabaseUrl(settings.submissions_db_url)} "
        f"window_days={settings.duplicate_window_days} timezone={settings.civil_timezone} "
        f"sources={sources}"
    )


def _start_command(ctx: typer.Context, commandName: str) -> tuple[Settings, str, logging.Logger]:
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    logger, _logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )
    logEvent(logger, logging.INFO, runId, "core", "Command started")
    printRunHeader(runId, commandName, settings, ctx.obj["sources"])
    return settings, runId, logger


def _build_runtime_or_exit(settings: Settings, logger: logging.Logger, runId: str) -> ServiceRuntime:
    try:
        return build_runtime_from_settings(settings, logger, runId)
    except ValueError as exc:
        logEvent(logger, logging.ERROR, runId, "config", str(exc))
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=2)


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs."),
    stateDir: str | None = typer.Option(None, "--state-dir", help="Directory for resolver state."),
    fleetDbUrl: str | None = typer.Option(None, "--fleet-db-url", help="SQLAlchemy URL of the fleet store"),
    submissionsDbUrl: str | None = typer.Option(None, "--submissions-db-url", help="SQLAlchemy URL of the submission store"),
    plateColumn: str | None = typer.Option(None, "--plate-column", help="Skip discovery and use this plate column"),
    windowDays: int | None = typer.Option(None, "--window-days", help="Duplicate window in days"),
    geocoding: bool | None = typer.Option(None, "--geocoding/--no-geocoding", help="Enable reverse geocoding"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - сохраняет всё в ctx.obj для подкоманд
    """
    if not runId:
        runId = generate_run_id()

    cliOverrides = {
        "log_level": logLevel,
        "log_dir": logDir,
        "state_dir": stateDir,
        "fleet_db_url": fleetDbUrl,
        "submissions_db_url": submissionsDbUrl,
        "assignment_plate_column": plateColumn,
        "duplicate_window_days": windowDays,
        "geocoding_enabled": geocoding,
    }
    try:
        loaded = load_settings(config_path=config, cli_overrides=cliOverrides)
    except ValueError as exc:
        typer.echo(f"ERROR: invalid settings: {exc}", err=True)
        raise typer.Exit(code=2)

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
    }


@app.command()
def serve(
    ctx: typer.Context,
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
):
    """Запускает HTTP-сервис приёма отзывов."""
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    printRunHeader(runId, "serve", settings, ctx.obj["sources"])
    logger = createServiceLogger(settings.log_dir, runId, settings.log_level)
    runtime = _build_runtime_or_exit(settings, logger, runId)

    tlsEnabled = bool(settings.tls_key_file and settings.tls_cert_file)
    logEvent(
        logger, logging.INFO, runId, "http",
        f"listening on {host or settings.http_host}:{port or settings.http_port} tls={tlsEnabled}",
    )
    uvicorn.run(
        create_app(runtime),
        host=host or settings.http_host,
        port=port or settings.http_port,
        ssl_keyfile=settings.tls_key_file if tlsEnabled else None,
        ssl_certfile=settings.tls_cert_file if tlsEnabled else None,
        log_level=logging.getLevelName(mapLogLevel(settings.log_level)).lower(),
    )


@app.command("resolve-column")
def resolve_column(ctx: typer.Context):
    """Обнаруживает колонку номера прицепа в таблице назначений и печатает результат."""
    settings, runId, logger = _start_command(ctx, "resolve-column")
    runtime = _build_runtime_or_exit(settings, logger, runId)
    try:
        column = runtime.resolver.resolve()
    except ColumnResolutionError as exc:
        typer.echo(f"ERROR: {exc.message}", err=True)
        for candidate in exc.candidates:
            typer.echo(f"  candidate={candidate['name']} score={candidate['score']}", err=True)
        raise typer.Exit(code=2)
    except UpstreamUnavailable as exc:
        logEvent(logger, logging.ERROR, runId, "fleet", exc.message)
        typer.echo(f"ERROR: {exc.message}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"plate_column={column} table={runtime.resolver.table.qualified}")


@app.command("check-plate")
def check_plate(ctx: typer.Context, plate: str = typer.Argument(..., help="Trailer plate, free text")):
    """Нормализует номер и проверяет активность ТС и назначенного водителя."""
    settings, runId, logger = _start_command(ctx, "check-plate")
    key = normalize(plate)
    typer.echo(f"key={key} plate_shaped={is_plate_shaped(key)}")
    runtime = _build_runtime_or_exit(settings, logger, runId)
    try:
        active = runtime.checker.exists_active_asset(key)
        typer.echo(f"active={active}")
        if not active:
            raise typer.Exit(code=1)
        operator = runtime.checker.lookup_operator(key)
    except ColumnResolutionError as exc:
        typer.echo(f"operator=unresolved ({exc.message})", err=True)
        raise typer.Exit(code=2)
    except UpstreamUnavailable as exc:
        logEvent(logger, logging.ERROR, runId, "fleet", exc.message)
        typer.echo(f"ERROR: {exc.message}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"operator={operator or '-'}")


@app.command("init-submissions-db")
def init_submissions_db(ctx: typer.Context):
    """Создаёт таблицы хранилища отзывов (локальная среда)."""
    settings, runId, logger = _start_command(ctx, "init-submissions-db")
    if not settings.submissions_db_url:
        typer.echo("ERROR: missing submissions_db_url", err=True)
        raise typer.Exit(code=2)
    db = SqlEngine.from_url(settings.submissions_db_url, "submissions", settings.db_connect_timeout)
    try:
        ensure_schema(db.engine)
    finally:
        db.dispose()
    logEvent(logger, logging.INFO, runId, "submissions", "submission tables ensured")
    typer.echo("submission tables ready")


if __name__ == "__main__":
    app()
