"""Tests for settings, metrics collection and the playback guard."""

import json
import os
import pytest
from unittest.mock import patch

from cortex_chat.config.settings import Settings
from cortex_chat.metrics.collector import MetricsCollector
from cortex_chat.utils.interruption_handler import InterruptionHandler
from cortex_chat.utils.logging import JsonFormatter, setup_logging


class TestSettings:
    """Settings defaults, file loading and environment overrides."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.models.default_model == "llama-3.1-8b-instant"
        assert settings.models.history_window == 20
        assert settings.audio.sample_rate == 16000
        assert settings.storage.store_path == "~/.cortex-chat/store.json"
        assert settings.validate() == []

    def test_environment_overrides(self):
        env = {
            "CORTEX_STORE_PATH": "/tmp/cortex.json",
            "CORTEX_DEFAULT_MODEL": "gemini-2.5-pro",
            "GROQ_MAX_RETRIES": "5",
            "ELEVENLABS_VOICE_ID": "voice-x",
            "MODEL_RESPONSE_TIMEOUT": "12",
            "LOG_FILE_ENABLED": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()

        assert settings.storage.store_path == "/tmp/cortex.json"
        assert settings.models.default_model == "gemini-2.5-pro"
        assert settings.models.groq_max_retries == 5
        assert settings.voice.elevenlabs_voice_id == "voice-x"
        assert settings.timeouts.model_response_timeout == 12
        assert settings.logging.file_enabled is True

    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps(
                {
                    "models": {"history_window": 10, "unknown_key": 1},
                    "audio": {"sample_rate": 44100},
                }
            )
        )

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(config_file)

        assert settings.models.history_window == 10
        assert settings.audio.sample_rate == 44100
        assert not hasattr(settings.models, "unknown_key")

    def test_save_and_reload(self, tmp_path):
        config_file = tmp_path / "saved.json"
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()
            settings.models.groq_temperature = 0.4
            settings.save_to_file(config_file)

            reloaded = Settings(config_file)

        assert reloaded.models.groq_temperature == 0.4

    def test_validate_reports_issues(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()
        settings.audio.sample_rate = 12345
        settings.models.history_window = 0

        issues = settings.validate()
        assert len(issues) == 2
        assert any("sample rate" in issue for issue in issues)

    def test_reload_picks_up_file_changes(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"models": {"history_window": 10}}))

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(config_file)
            config_file.write_text(json.dumps({"models": {"history_window": 4}}))
            settings.reload()

        assert settings.models.history_window == 4

    def test_tools_can_be_disabled_from_environment(self):
        with patch.dict(os.environ, {"CORTEX_TOOLS_ENABLED": "false"}, clear=True):
            settings = Settings()

        assert settings.models.tools_enabled is False
        assert settings.get_provider_config("groq")["max_tool_rounds"] == 4

    def test_validate_sample_format_and_tool_rounds(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()
        assert settings.audio.format == "float32"

        settings.audio.format = "int8"
        settings.models.max_tool_rounds = -1
        settings.models.gemini_max_retries = 0

        issues = settings.validate()
        assert len(issues) == 2
        assert any("sample format" in issue for issue in issues)
        assert any("tool rounds" in issue for issue in issues)

    def test_provider_configs(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        groq = settings.get_provider_config("groq")
        assert groq["base_url"] == "https://api.groq.com/openai/v1"
        assert groq["max_retries"] == 2
        assert settings.get_provider_config("gemini")["max_output_tokens"] == 2048
        assert settings.get_provider_config("whisperkit")["model"] == "large-v3_turbo"
        assert settings.get_provider_config("elevenlabs")["model_id"] == "eleven_flash_v2_5"

        with pytest.raises(ValueError, match="Unknown provider type"):
            settings.get_provider_config("openai")


class TestMetricsCollector:
    """Per-session metrics."""

    def setup_method(self):
        self.collector = MetricsCollector()

    def test_recording_without_session_is_noop(self):
        self.collector.record_latency("model", 10)
        self.collector.record_turn()
        assert self.collector.get_summary() == {"error": "No active session"}
        assert self.collector.save_metrics() is None

    def test_summary(self):
        self.collector.start_session("abc")
        for latency in [100, 200, 300, 400]:
            self.collector.record_latency("model", latency)
        self.collector.record_turn()
        self.collector.record_turn()
        self.collector.record_error("tts", "timeout")
        self.collector.record_interruption()

        summary = self.collector.get_summary()

        assert summary["turns"] == 2
        assert summary["total_errors"] == 1
        assert summary["error_rate"] == 0.5
        assert summary["interruptions"] == 1
        assert summary["model_latency_ms"]["min"] == 100
        assert summary["model_latency_ms"]["max"] == 400
        assert summary["model_latency_ms"]["avg"] == 250
        assert summary["stt_latency_ms"]["samples"] == 0

    def test_unknown_latency_kind_raises(self):
        with pytest.raises(ValueError):
            self.collector.record_latency("e2e", 1)

    def test_save_metrics(self, tmp_path):
        collector = MetricsCollector(tmp_path)
        collector.start_session("abc")
        collector.record_latency("stt", 42)
        collector.end_session()

        path = collector.save_metrics()

        data = json.loads(path.read_text())
        assert data["session_id"] == "abc"
        assert data["latencies"]["stt"] == [42]
        assert data["end_time"] is not None


class TestInterruptionHandler:
    """Once-per-playback completion guard."""

    def setup_method(self):
        self.handler = InterruptionHandler()

    def test_finish_accepted_once(self):
        self.handler.begin()
        assert self.handler.finish() is True
        assert self.handler.finish() is False

    def test_nothing_active_initially(self):
        assert not self.handler.is_interrupted_atomic()
        assert self.handler.finish() is False
        assert self.handler.trigger_interruption() is False

    def test_stale_generation_is_ignored(self):
        first = self.handler.begin()
        second = self.handler.begin()

        assert self.handler.finish(first) is False
        assert self.handler.finish(second) is True

    def test_interruption_finishes_playback(self):
        generation = self.handler.begin()

        assert self.handler.trigger_interruption() is True
        assert self.handler.is_interrupted_atomic()
        assert self.handler.finish(generation) is False
        assert self.handler.trigger_interruption() is False

    def test_begin_clears_interruption(self):
        self.handler.begin()
        self.handler.trigger_interruption()

        self.handler.begin()
        assert not self.handler.is_interrupted_atomic()


class TestLogging:
    """Logging setup."""

    def test_setup_logging_with_file(self, tmp_path):
        setup_logging(debug=True, log_file=True, log_dir=tmp_path)
        assert list(tmp_path.glob("cortex_*.log"))

    def test_json_formatter(self):
        import logging

        record = logging.LogRecord("cortex", logging.INFO, __file__, 1, "hello", None, None)
        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "hello"
        assert data["timestamp"].endswith("Z")
