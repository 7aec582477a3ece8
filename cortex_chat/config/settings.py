"""Configuration settings for Cortex Chat."""

import os
from pathlib import Path
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass, asdict
import json
import structlog
from dotenv import load_dotenv
import threading


logger = structlog.get_logger()


DEFAULT_SYSTEM_PROMPT = """You are Cortex, a helpful and intelligent AI assistant with access to powerful tools.

RESPONSE STYLE:
- Be conversational and helpful
- Explain your reasoning when using tools
- If you use a calculator, show the mathematical work
- Always be accurate and cite sources when relevant
"""


@dataclass
class PromptSettings:
    """Built-in prompt templates."""
    default: str = DEFAULT_SYSTEM_PROMPT


@dataclass
class ModelSettings:
    """Remote model settings."""
    default_model: str = "llama-3.1-8b-instant"
    history_window: int = 20  # messages, i.e. 10 exchanges

    # Groq (OpenAI-compatible endpoint)
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_temperature: float = 0.0
    groq_max_retries: int = 2

    # Gemini
    gemini_temperature: float = 0.7
    gemini_max_tokens: int = 2048
    gemini_max_retries: int = 2

    # Function tools (calculator)
    tools_enabled: bool = True
    max_tool_rounds: int = 4


@dataclass
class AudioSettings:
    """Audio capture settings."""
    sample_rate: int = 16000
    channels: int = 1
    format: str = "float32"  # sample dtype of the capture stream


@dataclass
class VoiceSettings:
    """Speech provider settings."""
    # WhisperKit
    whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli"
    whisperkit_model: str = "large-v3_turbo"
    whisperkit_compute_units: str = "cpuAndNeuralEngine"

    # ElevenLabs
    elevenlabs_voice_id: str = "pNInz6obpgDQGcFmaJgB"  # Adam voice
    elevenlabs_model_id: str = "eleven_flash_v2_5"
    elevenlabs_output_format: str = "mp3_22050_32"
    elevenlabs_stability: float = 0.5
    elevenlabs_similarity_boost: float = 0.8
    elevenlabs_style: float = 0.0
    elevenlabs_speed: float = 1.0
    elevenlabs_use_speaker_boost: bool = True


@dataclass
class StorageSettings:
    """Persistent store settings."""
    store_path: str = "~/.cortex-chat/store.json"
    metrics_dir: str = "~/.cortex-chat/metrics"


@dataclass
class TimeoutSettings:
    """Timeout settings for remote calls."""
    model_response_timeout: int = 30  # seconds
    transcription_timeout: int = 60  # seconds
    synthesis_timeout: int = 15  # seconds


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = "WARNING"
    format: str = "json"
    file_enabled: bool = False
    file_rotation_mb: int = 10
    file_backup_count: int = 7


class Settings:
    """Main settings class for Cortex Chat."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file) if config_file else None
        self._lock = threading.RLock()
        self._env_loaded = False

        self.prompts = PromptSettings()
        self.models = ModelSettings()
        self.audio = AudioSettings()
        self.voice = VoiceSettings()
        self.storage = StorageSettings()
        self.timeouts = TimeoutSettings()
        self.logging = LoggingSettings()

        # Load .env file first
        self._load_env_file()

        if self.config_file and self.config_file.exists():
            self.load_from_file()

        # Environment wins over the config file
        self.load_from_env()

    def _sections(self) -> Dict[str, Any]:
        return {
            "prompts": self.prompts,
            "models": self.models,
            "audio": self.audio,
            "voice": self.voice,
            "storage": self.storage,
            "timeouts": self.timeouts,
            "logging": self.logging,
        }

    def _load_env_file(self) -> None:
        """Load environment variables from the nearest .env file."""
        if not self._env_loaded:
            current_dir = Path.cwd()
            for parent in [current_dir] + list(current_dir.parents):
                env_file = parent / ".env"
                if env_file.exists():
                    load_dotenv(env_file)
                    logger.debug("Loaded .env file", path=str(env_file))
                    break
            self._env_loaded = True

    def load_from_file(self) -> None:
        """Load settings from the JSON configuration file."""
        if not self.config_file or not self.config_file.exists():
            return

        try:
            with self._lock:
                with open(self.config_file, "r") as f:
                    config = json.load(f)

                for name, section in self._sections().items():
                    for key, value in config.get(name, {}).items():
                        if hasattr(section, key):
                            setattr(section, key, value)
                        else:
                            logger.warning(
                                "Ignoring unknown setting", section=name, key=key
                            )

                logger.info("Loaded settings from file", file=str(self.config_file))

        except Exception as e:
            logger.error(
                "Failed to load settings from file",
                file=str(self.config_file),
                error=str(e),
            )

    def load_from_env(self) -> None:
        """Load settings from environment variables."""
        with self._lock:
            if os.getenv("SYSTEM_PROMPT_DEFAULT"):
                self.prompts.default = os.getenv("SYSTEM_PROMPT_DEFAULT")

            if os.getenv("CORTEX_DEFAULT_MODEL"):
                self.models.default_model = os.getenv("CORTEX_DEFAULT_MODEL")
            if os.getenv("GROQ_BASE_URL"):
                self.models.groq_base_url = os.getenv("GROQ_BASE_URL")
            if os.getenv("GROQ_TEMPERATURE"):
                self.models.groq_temperature = float(os.getenv("GROQ_TEMPERATURE"))
            if os.getenv("GROQ_MAX_RETRIES"):
                self.models.groq_max_retries = int(os.getenv("GROQ_MAX_RETRIES"))
            if os.getenv("GEMINI_MAX_RETRIES"):
                self.models.gemini_max_retries = int(os.getenv("GEMINI_MAX_RETRIES"))
            if os.getenv("CORTEX_TOOLS_ENABLED"):
                self.models.tools_enabled = (
                    os.getenv("CORTEX_TOOLS_ENABLED").lower() == "true"
                )

            if os.getenv("AUDIO_SAMPLE_RATE"):
                self.audio.sample_rate = int(os.getenv("AUDIO_SAMPLE_RATE"))
            if os.getenv("AUDIO_CHANNELS"):
                self.audio.channels = int(os.getenv("AUDIO_CHANNELS"))

            if os.getenv("WHISPERKIT_PATH"):
                self.voice.whisperkit_path = os.getenv("WHISPERKIT_PATH")
            if os.getenv("WHISPERKIT_MODEL"):
                self.voice.whisperkit_model = os.getenv("WHISPERKIT_MODEL")
            if os.getenv("ELEVENLABS_VOICE_ID"):
                self.voice.elevenlabs_voice_id = os.getenv("ELEVENLABS_VOICE_ID")
            if os.getenv("ELEVENLABS_MODEL_ID"):
                self.voice.elevenlabs_model_id = os.getenv("ELEVENLABS_MODEL_ID")
            if os.getenv("ELEVENLABS_OUTPUT_FORMAT"):
                self.voice.elevenlabs_output_format = os.getenv(
                    "ELEVENLABS_OUTPUT_FORMAT"
                )

            if os.getenv("CORTEX_STORE_PATH"):
                self.storage.store_path = os.getenv("CORTEX_STORE_PATH")

            if os.getenv("MODEL_RESPONSE_TIMEOUT"):
                self.timeouts.model_response_timeout = int(
                    os.getenv("MODEL_RESPONSE_TIMEOUT")
                )
            if os.getenv("TRANSCRIPTION_TIMEOUT"):
                self.timeouts.transcription_timeout = int(
                    os.getenv("TRANSCRIPTION_TIMEOUT")
                )
            if os.getenv("SYNTHESIS_TIMEOUT"):
                self.timeouts.synthesis_timeout = int(os.getenv("SYNTHESIS_TIMEOUT"))

            if os.getenv("LOG_LEVEL"):
                self.logging.level = os.getenv("LOG_LEVEL")
            if os.getenv("LOG_FORMAT"):
                self.logging.format = os.getenv("LOG_FORMAT")
            if os.getenv("LOG_FILE_ENABLED"):
                self.logging.file_enabled = (
                    os.getenv("LOG_FILE_ENABLED").lower() == "true"
                )

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """Save current settings to file."""
        save_path = Path(file_path) if file_path else self.config_file
        if not save_path:
            raise ValueError("No file path provided")

        try:
            with self._lock:
                save_path.parent.mkdir(parents=True, exist_ok=True)
                with open(save_path, "w") as f:
                    json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

                logger.info("Saved settings to file", file=str(save_path))

        except Exception as e:
            logger.error(
                "Failed to save settings to file", file=str(save_path), error=str(e)
            )
            raise

    def get_provider_config(self, provider_type: str) -> Dict[str, Any]:
        """Get constructor kwargs for a specific provider."""
        if provider_type == "groq":
            return {
                "base_url": self.models.groq_base_url,
                "temperature": self.models.groq_temperature,
                "max_retries": self.models.groq_max_retries,
                "timeout": float(self.timeouts.model_response_timeout),
                "max_tool_rounds": self.models.max_tool_rounds,
            }
        elif provider_type == "gemini":
            return {
                "temperature": self.models.gemini_temperature,
                "max_output_tokens": self.models.gemini_max_tokens,
                "max_retries": self.models.gemini_max_retries,
                "timeout": float(self.timeouts.model_response_timeout),
                "max_tool_rounds": self.models.max_tool_rounds,
            }
        elif provider_type == "whisperkit":
            return {
                "whisperkit_path": self.voice.whisperkit_path,
                "model": self.voice.whisperkit_model,
                "compute_units": self.voice.whisperkit_compute_units,
                "timeout": float(self.timeouts.transcription_timeout),
            }
        elif provider_type == "elevenlabs":
            return {
                "voice_id": self.voice.elevenlabs_voice_id,
                "model_id": self.voice.elevenlabs_model_id,
                "output_format": self.voice.elevenlabs_output_format,
                "stability": self.voice.elevenlabs_stability,
                "similarity_boost": self.voice.elevenlabs_similarity_boost,
                "style": self.voice.elevenlabs_style,
                "speed": self.voice.elevenlabs_speed,
                "use_speaker_boost": self.voice.elevenlabs_use_speaker_boost,
                "timeout": float(self.timeouts.synthesis_timeout),
            }
        else:
            raise ValueError(f"Unknown provider type: {provider_type}")

    def reload(self) -> None:
        """Reload settings from file and environment."""
        with self._lock:
            if self.config_file and self.config_file.exists():
                self.load_from_file()
            self.load_from_env()
            logger.info("Settings reloaded")

    def validate(self) -> list[str]:
        """Validate current settings and return list of issues."""
        issues = []

        if self.audio.sample_rate not in [8000, 16000, 44100, 48000]:
            issues.append(f"Invalid sample rate: {self.audio.sample_rate}")
        if self.audio.channels not in [1, 2]:
            issues.append(f"Invalid channels: {self.audio.channels}")
        if self.audio.format not in ["float32", "int16", "int32"]:
            issues.append(f"Invalid sample format: {self.audio.format}")

        if self.models.history_window <= 0:
            issues.append(f"Invalid history window: {self.models.history_window}")
        if self.models.groq_max_retries < 0:
            issues.append(f"Invalid Groq retries: {self.models.groq_max_retries}")
        if self.models.gemini_max_retries < 0:
            issues.append(f"Invalid Gemini retries: {self.models.gemini_max_retries}")
        if self.models.max_tool_rounds < 0:
            issues.append(f"Invalid tool rounds: {self.models.max_tool_rounds}")

        if self.timeouts.model_response_timeout <= 0:
            issues.append(
                f"Invalid model response timeout: {self.timeouts.model_response_timeout}"
            )
        if self.timeouts.synthesis_timeout <= 0:
            issues.append(f"Invalid TTS timeout: {self.timeouts.synthesis_timeout}")

        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return {name: asdict(section) for name, section in self._sections().items()}


# Global settings instance
settings = Settings()
