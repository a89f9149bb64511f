"""Configuration loader for the comanda chat gateway.

Settings come from an optional YAML file and are then overridden field by field
by ``COMANDA_<FIELD>`` environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

ENV_PREFIX = "COMANDA_"
CONFIG_PATH_ENV = "COMANDA_CONFIG_PATH"


class GatewaySettings(BaseModel):
    upstream_url: str = "http://127.0.0.1:3001/chat"
    upstream_api_key: Optional[str] = None
    upstream_timeout_s: float = Field(60.0, gt=0)
    upstream_connect_timeout_s: float = Field(5.0, gt=0)

    sentinel: str = Field("__TOOL_CALL__", min_length=1)
    heuristic_min_chars: int = Field(50, ge=0)
    max_scan_bytes: int = Field(300, ge=1)
    max_tool_call_bytes: int = Field(65536, ge=1)

    tool_timeout_s: float = Field(10.0, gt=0)
    disconnect_poll_s: float = Field(0.1, gt=0)

    timezone: str = "America/Bogota"
    reply_language: str = "Spanish"

    data_backend: Literal["memory", "supabase"] = "memory"
    data_file: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    auth_mode: Literal["token", "supabase", "off"] = "token"
    auth_tokens: str = ""
    dev_user_id: str = "dev-user"

    state_dir: str = "~/.comanda"

    @field_validator("data_backend", "auth_mode", mode="before")
    @classmethod
    def _normalize_choice(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().casefold()
        return value

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()

    def auth_token_map(self) -> dict[str, str]:
        """Parse ``token=user_id`` pairs separated by commas."""
        mapping: dict[str, str] = {}
        for pair in self.auth_tokens.split(","):
            token, sep, user_id = pair.strip().partition("=")
            if sep and token.strip() and user_id.strip():
                mapping[token.strip()] = user_id.strip()
        return mapping


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name in GatewaySettings.model_fields:
        raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None:
            overrides[name] = raw
    return overrides


def _read_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a mapping")
    return data


def load_settings(path: Optional[str] = None, environ: Optional[dict[str, str]] = None) -> GatewaySettings:
    """Load settings, dropping env values that do not validate.

    A malformed ``COMANDA_*`` value (e.g. a non-numeric timeout) falls back to
    the file or default value instead of preventing startup.
    """
    env = dict(os.environ if environ is None else environ)
    cfg_path = path or env.get(CONFIG_PATH_ENV)
    data: dict[str, Any] = _read_yaml(Path(cfg_path).expanduser()) if cfg_path else {}

    overrides = _env_overrides(env)
    merged = {**data, **overrides}
    try:
        return GatewaySettings.model_validate(merged)
    except ValidationError as exc:
        bad_fields = {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
        rejected = {key for key in overrides if key in bad_fields}
        if not rejected:
            raise
        kept = {key: value for key, value in merged.items() if key not in rejected}
        for key in rejected:
            if key in data:
                kept[key] = data[key]
        return GatewaySettings.model_validate(kept)
