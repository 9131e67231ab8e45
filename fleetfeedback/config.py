from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable
import os
import yaml

ENV_PREFIX = "FLEETFEEDBACK_"


@dataclass(frozen=True)
class Settings:
    # Stores
    fleet_db_url: str | None = None
    submissions_db_url: str | None = None
    db_connect_timeout: int = 10

    # Geocoding
    geocoding_enabled: bool = True
    geocoder_url: str = "https://nominatim.openstreetmap.org/reverse"
    geocoder_user_agent: str = "fleetfeedback/1.0"
    geocoder_timeout_seconds: float = 5.0

    # Rules
    duplicate_window_days: int = 7
    civil_timezone: str = "America/Sao_Paulo"
    activation_tag: str = "frota"
    assignment_plate_column: str | None = None

    # HTTP
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    tls_key_file: str | None = None
    tls_cert_file: str | None = None
    token_header: str = "X-Evaluator-Token"
    build_tag: str = "fleetfeedback-dev"

    # Paths / logging
    state_dir: str = "./state"
    log_dir: str = "./logs"
    log_level: str = "INFO"


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        return {}
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _parse_bool(v: str) -> bool:
    vv = v.lower()
    if vv in ("1", "true", "yes", "y"):
        return True
    if vv in ("0", "false", "no", "n"):
        return False
    raise ValueError(f"Invalid boolean env value: {v}")


def _parser_for(default: Any) -> Callable[[str], Any]:
    if isinstance(default, bool):
        return _parse_bool
    if isinstance(default, int):
        return int
    if isinstance(default, float):
        return float
    return str


def env_name(field_name: str) -> str:
    return f"{ENV_PREFIX}{field_name.upper()}"


def load_settings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Priority: CLI > ENV > config > defaults
    """
    sources: list[str] = []
    defaults = Settings()
    names = [f.name for f in fields(Settings)]

    # 1) config file
    cfg: dict = {}
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")

    unknown = sorted(set(cfg) - set(names))
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    # 2) env
    env = {name: _env_get(env_name(name)) for name in names}
    if any(v is not None for v in env.values()):
        sources.append("env")

    merged: dict[str, Any] = {name: cfg.get(name, getattr(defaults, name)) for name in names}

    for name, raw in env.items():
        if raw is None:
            continue
        merged[name] = _parser_for(getattr(defaults, name))(raw)

    # 3) apply CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")

    for k, v in cli_overrides.items():
        if v is None:
            continue
        merged[k] = v

    settings = Settings(**merged)
    if settings.duplicate_window_days <= 0:
        raise ValueError("duplicate_window_days must be positive")

    return LoadedSettings(settings=settings, sources_used=sources)
