"""Configuration for the admin console and the API service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import yaml


DEFAULT_API_URL = "http://localhost:8000/api/v1"
DEFAULT_TIMEOUT = 10.0


def _parse_verify_setting(value: object) -> Optional[Union[str, bool]]:
    if value is None or isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"", "default"}:
        return None
    if lowered in {"0", "false", "no", "off"}:
        return False
    if lowered in {"1", "true", "yes", "on"}:
        return True
    return str(Path(str(value)).expanduser())


@dataclass(frozen=True)
class ClientSettings:
    """Connection settings for the admin users API."""

    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    verify: Optional[Union[str, bool]] = None
    preview_dir: Optional[Path] = None

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "ClientSettings":
        """Create :class:`ClientSettings` from raw dictionary data."""
        unknown = set(data) - {"api_url", "timeout", "verify", "preview_dir"}
        if unknown:
            raise ValueError(f"Unknown client configuration fields: {', '.join(sorted(unknown))}")

        preview_dir: Optional[Path] = None
        raw_preview = data.get("preview_dir")
        if raw_preview:
            expanded = Path(str(raw_preview)).expanduser()
            if not expanded.is_absolute() and base_path is not None:
                expanded = base_path / expanded
            preview_dir = expanded.resolve(strict=False)

        api_url = str(data.get("api_url") or DEFAULT_API_URL).strip().rstrip("/")
        try:
            timeout = float(data.get("timeout", DEFAULT_TIMEOUT))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError("timeout must be a number of seconds") from exc
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        return ClientSettings(
            api_url=api_url,
            timeout=timeout,
            verify=_parse_verify_setting(data.get("verify")),
            preview_dir=preview_dir,
        )


def load_client_settings(config_path: Path) -> ClientSettings:
    """Load client settings from a YAML file."""
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping")

    section = raw.get("client", raw)
    if not isinstance(section, dict):
        raise ValueError("The 'client' section must be a mapping")
    return ClientSettings.from_dict(section, base_path=config_path.parent)


def resolve_client_settings(
    env: Optional[Mapping[str, str]] = None,
    *,
    api_url: Optional[str] = None,
) -> ClientSettings:
    """Combine the YAML file, environment variables and explicit overrides.

    Explicit arguments win over ``USERADMIN_*`` variables, which win over
    the file named by ``USERADMIN_CONFIG``.
    """

    env = os.environ if env is None else env
    config_file = env.get("USERADMIN_CONFIG")
    if config_file:
        settings = load_client_settings(Path(config_file).expanduser())
    else:
        settings = ClientSettings()

    overrides: Dict[str, object] = {}
    if env.get("USERADMIN_API_URL"):
        overrides["api_url"] = env["USERADMIN_API_URL"].strip().rstrip("/")
    if env.get("USERADMIN_HTTP_TIMEOUT"):
        try:
            overrides["timeout"] = float(env["USERADMIN_HTTP_TIMEOUT"])
        except ValueError as exc:
            raise ValueError("USERADMIN_HTTP_TIMEOUT must be a number of seconds") from exc
        if overrides["timeout"] <= 0:  # type: ignore[operator]
            raise ValueError("USERADMIN_HTTP_TIMEOUT must be positive")
    if env.get("USERADMIN_HTTP_VERIFY"):
        overrides["verify"] = _parse_verify_setting(env["USERADMIN_HTTP_VERIFY"])
    if env.get("USERADMIN_PREVIEW_DIR"):
        overrides["preview_dir"] = Path(env["USERADMIN_PREVIEW_DIR"]).expanduser()
    if api_url:
        overrides["api_url"] = api_url.strip().rstrip("/")

    return replace(settings, **overrides) if overrides else settings


__all__ = [
    "ClientSettings",
    "DEFAULT_API_URL",
    "load_client_settings",
    "resolve_client_settings",
]
