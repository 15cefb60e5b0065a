import pytest
from pydantic import ValidationError

from relay.server.settings import RelayServerSettings


class TestRelayServerSettings:
    def test_defaults(self):
        settings = RelayServerSettings()

        assert settings.host == "0.0.0.0"
        assert settings.port == 3001
        assert settings.log_dir is None
        assert settings.room_ttl_seconds == 3600
        assert settings.rounds_total == 3
        assert settings.max_message_bytes == 65536
        assert settings.max_decode_errors == 5
        assert settings.outbound_queue_size == 256

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("RELAY_PORT", "4000")
        monkeypatch.setenv("RELAY_ROUNDS_TOTAL", "5")
        monkeypatch.setenv("RELAY_ROOM_TTL_SECONDS", "0")

        settings = RelayServerSettings()

        assert settings.port == 4000
        assert settings.rounds_total == 5
        assert settings.room_ttl_seconds == 0

    def test_cors_origins_from_csv(self, monkeypatch):
        monkeypatch.setenv("RELAY_CORS_ORIGINS", "http://a.local,http://b.local")

        assert RelayServerSettings().cors_origins == ["http://a.local", "http://b.local"]

    def test_cors_origins_from_json(self, monkeypatch):
        monkeypatch.setenv("RELAY_CORS_ORIGINS", '["http://a.local"]')

        assert RelayServerSettings().cors_origins == ["http://a.local"]

    def test_cors_origins_may_be_empty(self):
        assert RelayServerSettings(cors_origins=[]).cors_origins == []

    @pytest.mark.parametrize(
        ("field", "value"),
        [("port", 0), ("room_ttl_seconds", -1), ("rounds_total", 0), ("max_decode_errors", 0)],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            RelayServerSettings(**{field: value})
