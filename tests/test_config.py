"""Config loader tests."""

import json

import pytest

from flashbot.config import ConfigError, DefaultsConfig, load_config, parse_config


def write_config(tmp_path, data):
    path = tmp_path / "flashbot.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_config_reads_relays_and_defaults(tmp_path):
    path = write_config(
        tmp_path,
        {
            "network_id": 1,
            "defaults": {"timeout": 4, "max_workers": 3, "verify_tls": False},
            "relays": [
                {"url": "https://relay.flashbots.net", "supports_simulation": True},
                {
                    "url": "https://relay.example",
                    "send_method": "eth_sendBundleV2",
                    "custom_headers": {"X-Api-Key": "secret"},
                },
            ],
        },
    )

    config = load_config(path)

    assert config.network_id == 1
    assert config.defaults == DefaultsConfig(timeout=4.0, max_workers=3, verify_tls=False)
    assert [relay.url for relay in config.relays] == ["https://relay.flashbots.net", "https://relay.example"]
    assert config.relays[1].send_method_name() == "eth_sendBundleV2"
    assert config.relays[1].call_method_name() == "eth_callBundle"
    assert dict(config.relays[1].custom_headers) == {"X-Api-Key": "secret"}
    assert [relay.url for relay in config.simulation_relays()] == ["https://relay.flashbots.net"]
    assert config.to_dict()["network_id"] == 1


def test_missing_relays_fall_back_to_known_relays():
    config = parse_config({"network_id": 1})
    assert config.relays[0].url == "https://relay.flashbots.net"
    assert config.relays[0].supports_simulation
    assert config.defaults == DefaultsConfig()


def test_unknown_network_without_relays():
    with pytest.raises(ConfigError):
        parse_config({"network_id": 424242})


def test_unknown_network_with_explicit_relays():
    config = parse_config({"network_id": 424242, "relays": [{"url": "https://relay.example"}]})
    assert config.relays[0].supports_simulation is False


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"network_id": "mainnet"},
        {"network_id": 1, "relays": []},
        {"network_id": 1, "relays": "https://relay.example"},
        {"network_id": 1, "relays": [{"supports_simulation": True}]},
        {"network_id": 1, "relays": [{"url": " "}]},
        {"network_id": 1, "relays": [{"url": "https://a"}, {"url": "https://a"}]},
        {"network_id": 1, "relays": [{"url": "https://a", "custom_headers": ["X"]}]},
        {"network_id": 1, "relays": [{"url": "https://a", "send_method": 5}]},
        {"network_id": 1, "defaults": {"timeout": 0}},
        {"network_id": 1, "defaults": {"max_workers": 0}},
        {"network_id": 1, "defaults": {"timeout": "soon"}},
        {"network_id": 1, "defaults": []},
    ],
)
def test_invalid_config_is_rejected(data):
    with pytest.raises(ConfigError):
        parse_config(data)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.json")


def test_invalid_json(tmp_path):
    path = tmp_path / "flashbot.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid JSON"):
        load_config(path)


@pytest.mark.parametrize(
    "data",
    [
        {"network_id": 1, "relays": [{"url": "https://a", "supports_simulation": "false"}]},
        {"network_id": 1, "relays": [{"url": "https://a", "supports_simulation": 0}]},
        {"network_id": 1, "defaults": {"verify_tls": "false"}},
    ],
)
def test_flags_must_be_json_booleans(data):
    with pytest.raises(ConfigError):
        parse_config(data)


def test_string_flag_never_enables_simulation():
    with pytest.raises(ConfigError, match="supports_simulation"):
        parse_config({"network_id": 1, "relays": [{"url": "https://a", "supports_simulation": "false"}]})


def test_null_flags_use_defaults():
    config = parse_config(
        {"network_id": 1, "defaults": {"verify_tls": None}, "relays": [{"url": "https://a", "supports_simulation": None}]}
    )
    assert config.defaults.verify_tls is True
    assert config.relays[0].supports_simulation is False


def test_non_latin1_header_is_rejected():
    with pytest.raises(ConfigError, match="latin-1"):
        parse_config({"network_id": 1, "relays": [{"url": "https://a", "custom_headers": {"X-K": "ключ"}}]})
