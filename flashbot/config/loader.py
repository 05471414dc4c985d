"""Config loader for relay endpoints and broadcast defaults."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Tuple

from flashbot.core.endpoints import RelayEndpoint, all_endpoints
from flashbot.core.errors import UnsupportedNetwork
from flashbot.core.utils import load_json_file

DEFAULT_CONFIG_PATH = Path("flashbot.json")


class ConfigError(ValueError):
    """Raised when configuration data is invalid or missing."""


def _require_keys(data: Mapping[str, Any], keys: Iterable[str], context: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise ConfigError(f"{context} missing required keys: {', '.join(missing)}")


@dataclass(frozen=True)
class DefaultsConfig:
    """Default operational parameters."""

    timeout: float = 10.0
    max_workers: int = 1
    verify_tls: bool = True


@dataclass(frozen=True)
class FlashbotConfig:
    """Typed wrapper around the relay configuration."""

    network_id: int
    relays: Tuple[RelayEndpoint, ...]
    defaults: DefaultsConfig
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)

    def simulation_relays(self) -> Tuple[RelayEndpoint, ...]:
        return tuple(relay for relay in self.relays if relay.supports_simulation)

    def to_dict(self) -> Dict[str, Any]:
        """Return the original configuration mapping."""
        return dict(self.raw)


def _normalize_headers(headers: Any, context: str) -> Dict[str, str]:
    if headers is None:
        return {}
    if not isinstance(headers, Mapping):
        raise ConfigError(f"{context}.custom_headers must be a mapping")
    normalized = {str(name): str(value) for name, value in headers.items()}
    for name, value in normalized.items():
        try:
            name.encode("latin-1")
            value.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise ConfigError(f"{context}.custom_headers[{name!r}] is not latin-1 encodable") from exc
    return normalized


def _flag(value: Any, default: bool, context: str) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{context} must be true or false, got {value!r}")
    return value


def _optional_method(value: Any, context: str) -> Optional[str]:
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{context} must be a string")
    return value


def _normalize_relays(relays: Any) -> List[RelayEndpoint]:
    if not isinstance(relays, list):
        raise ConfigError("relays must be a list of relay objects")

    result: List[RelayEndpoint] = []
    seen = set()
    for index, relay in enumerate(relays):
        context = f"relays[{index}]"
        if not isinstance(relay, Mapping):
            raise ConfigError(f"{context} must be an object")
        _require_keys(relay, ["url"], context)
        url = str(relay["url"]).strip()
        if not url:
            raise ConfigError(f"{context}.url cannot be empty")
        if url in seen:
            raise ConfigError(f"{context}.url is listed twice: {url}")
        seen.add(url)
        result.append(
            RelayEndpoint(
                url=url,
                supports_simulation=_flag(
                    relay.get("supports_simulation"), False, f"{context}.supports_simulation"
                ),
                send_method=_optional_method(relay.get("send_method"), f"{context}.send_method"),
                call_method=_optional_method(relay.get("call_method"), f"{context}.call_method"),
                custom_headers=_normalize_headers(relay.get("custom_headers"), context),
            )
        )
    if not result:
        raise ConfigError("relays cannot be empty")
    return result


def _load_json(path: Path) -> MutableMapping[str, Any]:
    try:
        return load_json_file(path)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file contains invalid JSON: {path}") from exc


def parse_config(data: Mapping[str, Any]) -> FlashbotConfig:
    """Validate an already-parsed configuration mapping."""
    if not isinstance(data, Mapping):
        raise ConfigError("config must be a JSON object")
    _require_keys(data, ["network_id"], "config")

    try:
        network_id = int(data["network_id"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"network_id must be an integer: {data['network_id']!r}") from exc

    defaults = data.get("defaults")
    if defaults is None:
        defaults = {}
    if not isinstance(defaults, Mapping):
        raise ConfigError("defaults must be an object")
    try:
        defaults_config = DefaultsConfig(
            timeout=float(defaults.get("timeout", DefaultsConfig.timeout)),
            max_workers=int(defaults.get("max_workers", DefaultsConfig.max_workers)),
            verify_tls=_flag(defaults.get("verify_tls"), DefaultsConfig.verify_tls, "defaults.verify_tls"),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"defaults contain an invalid value: {exc}") from exc
    if defaults_config.timeout <= 0:
        raise ConfigError("defaults.timeout must be positive")
    if defaults_config.max_workers < 1:
        raise ConfigError("defaults.max_workers must be at least 1")

    if "relays" in data:
        relays = _normalize_relays(data["relays"])
    else:
        try:
            relays = list(all_endpoints(network_id))
        except UnsupportedNetwork as exc:
            raise ConfigError(f"no relays configured and {exc}") from exc

    return FlashbotConfig(
        network_id=network_id,
        relays=tuple(relays),
        defaults=defaults_config,
        raw=dict(data),
    )


def load_config(config_path: Optional[Path] = None) -> FlashbotConfig:
    """Load and validate relay configuration data."""
    config_path = config_path or DEFAULT_CONFIG_PATH
    return parse_config(_load_json(config_path))


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "DefaultsConfig",
    "FlashbotConfig",
    "load_config",
    "parse_config",
]
