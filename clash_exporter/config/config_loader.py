# ────────────────────────────────────────────────────────────────────────────
# config/config_loader.py
# ────────────────────────────────────────────────────────────────────────────
from __future__ import annotations
import os
import re
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from clash_exporter.core.errors import ConfigError

CONFIG_ENV = "CLASH_EXPORTER_CONFIG"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|\u00b5s|\u03bcs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9, "us": 1e-6, "\u00b5s": 1e-6, "\u03bcs": 1e-6,
    "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0,
}


def parse_duration(v: Any) -> float:
    """
    Seconds from a Go-style duration ("500ms", "5s", "1m30s") or a plain number.
    """
    if isinstance(v, bool):
        raise ValueError(f"invalid duration {v!r}")
    if isinstance(v, (int, float)):
        return float(v)
    s = str(v).strip()
    try:
        return float(s)
    except ValueError:
        pass
    pos, total = 0, 0.0
    for m in _DURATION_PART.finditer(s):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _UNIT_SECONDS[m.group(2)]
        pos = m.end()
    if not s or pos != len(s):
        raise ValueError(f"invalid duration {v!r}")
    return total


def split_address(addr: str) -> Tuple[str, int]:
    """("host", port) from "host:port"; IPv6 hosts may be bracketed."""
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"address {addr!r} must be host:port")
    return host.strip("[]"), int(port)


# ── exporter ────────────────────────────────────────────────────────────────
class ExporterConfig(BaseModel):
    listen_address:   str   = Field("127.0.0.1:9869", description="Address to listen on")
    clash_address:    str   = Field("127.0.0.1:9090", description="Address of the clash API")
    clash_timeout:    float = Field(5.0,  description="Timeout for reading from the clash API, seconds")
    collect_interval: float = Field(30.0, description="Interval to collect metrics from clash, seconds")
    metrics_path:     str   = Field("/metrics", description="Path to serve metrics at")
    on_decode_error:  Literal["exit", "skip"] = "exit"
    log_level:        str   = "INFO"
    log_format:       Literal["json", "text"] = "json"

    _dur = field_validator("clash_timeout", "collect_interval", mode="before")(parse_duration)

    @field_validator("clash_timeout", "collect_interval")
    def _positive(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("listen_address", "clash_address")
    def _host_port(cls, v):
        split_address(v)
        return v

    @field_validator("metrics_path")
    def _path(cls, v):
        if not v.startswith("/") or v == "/":
            raise ValueError("must start with '/' and not be the root path")
        return v

    @field_validator("log_level")
    def _level(cls, v):
        v = str(v).upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {v!r}")
        return v

    @property
    def listen(self) -> Tuple[str, int]:
        return split_address(self.listen_address)


def load_config(
    path: Union[str, Path] | None = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ExporterConfig:
    """
    Build the exporter config, with these fallbacks:
      1) `overrides` (CLI flags) win over everything; None values are ignored.
      2) Values from the YAML file at `path`, or at $CLASH_EXPORTER_CONFIG.
      3) Field defaults.
    A file named explicitly (argument or env var) must exist.
    """
    env_path = os.getenv(CONFIG_ENV)
    cfg_path = Path(path) if path else (Path(env_path) if env_path else None)

    raw: Dict[str, Any] = {}
    if cfg_path is not None:
        cfg_path = Path(os.path.expanduser(cfg_path))
        if not cfg_path.exists():
            raise ConfigError(f"Config file not found at {cfg_path!s}")
        try:
            with cfg_path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{cfg_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{cfg_path}: top level must be a mapping")
        # YAML keys may use the CLI spelling (listen-address)
        raw = {k.replace("-", "_"): v for k, v in raw.items()}

    raw.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return ExporterConfig(**raw)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
