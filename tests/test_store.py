import json

import pytest

from fleet_alerts import config
from fleet_alerts.channels import TelegramChannel, WebhookChannel
from fleet_alerts.notifications import ChannelLoadError, NotificationRegistry
from fleet_alerts.store import JsonChannelStore, load_alert_rules


def test_missing_file_fails_registry_load(tmp_path):
    registry = NotificationRegistry()
    with pytest.raises(ChannelLoadError):
        registry.load(JsonChannelStore(tmp_path / "absent.json", optional=False))


def test_missing_file_allowed_when_optional(tmp_path):
    store = JsonChannelStore(tmp_path / "absent.json", optional=True)
    assert store.load_all() == []


def test_optional_flag_defaults_to_config(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "CHANNELS_OPTIONAL", True)
    assert JsonChannelStore(tmp_path / "absent.json").load_all() == []
    monkeypatch.setattr(config, "CHANNELS_OPTIONAL", False)
    with pytest.raises(FileNotFoundError):
        JsonChannelStore(tmp_path / "absent.json").load_all()


def test_save_then_load(tmp_path):
    path = tmp_path / "data" / "channels.json"
    store = JsonChannelStore(path)
    store.save_all(
        [
            WebhookChannel(1, "https://hooks.example/#NOTIFY#", name="ops", method="GET"),
            TelegramChannel(2, chat_id=-100123, token="123:ABC", name="oncall"),
        ]
    )

    loaded = store.load_all()

    assert [type(c) for c in loaded] == [WebhookChannel, TelegramChannel]
    assert loaded[0].name == "ops"
    assert loaded[0].method == "GET"
    assert loaded[1].chat_id == -100123
    assert loaded[1].token == "123:ABC"


def test_malformed_file_fails_registry_load(tmp_path):
    path = tmp_path / "channels.json"
    path.write_text("{not json")
    registry = NotificationRegistry()
    with pytest.raises(ChannelLoadError):
        registry.load(JsonChannelStore(path))


def test_non_list_document_is_rejected(tmp_path):
    path = tmp_path / "channels.json"
    path.write_text(json.dumps({"id": 1}))
    with pytest.raises(ValueError):
        JsonChannelStore(path).load_all()


def test_load_alert_rules(tmp_path):
    path = tmp_path / "alerts.json"
    path.write_text(
        json.dumps(
            [
                {"id": 1, "name": "CPU high", "rules": [{"type": "cpu", "max": 90}]},
                {
                    "id": 2,
                    "name": "Quota",
                    "enabled": False,
                    "rules": [{"type": "transfer_out_cycle", "max": 1000, "cycle_interval": 24}],
                },
            ]
        )
    )

    alerts = load_alert_rules(path)

    assert [a.name for a in alerts] == ["CPU high", "Quota"]
    assert alerts[1].enabled is False
    assert alerts[1].rules[0].cycle_interval_hours == 24


def test_load_alert_rules_rejects_bad_documents(tmp_path):
    path = tmp_path / "alerts.json"
    path.write_text(json.dumps({"id": 1}))
    with pytest.raises(ValueError):
        load_alert_rules(path)
    with pytest.raises(FileNotFoundError):
        load_alert_rules(tmp_path / "absent.json")
