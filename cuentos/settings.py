import os
import json
import logging
from typing import Dict, Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from cuentos.model_providers import AudioModel, ImageModel, TextModel

load_dotenv()

logger = logging.getLogger("cuentos-app")


class ConfigurationError(RuntimeError):
    """Raised when required configuration (the API key) is missing"""


class GenerationConfig(BaseModel):
    """Explicit configuration handed to every pipeline stage"""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1, repr=False)
    text_model: str
    image_model: str
    audio_model: str
    voice: str
    max_attempts: int = Field(5, ge=1)
    public_dir: str = "public"


class AppConfig:
    """Application configuration management"""

    # Default configuration values
    _defaults = {
        "text_model": TextModel.GEMINI_2_5_FLASH.value,
        "image_model": ImageModel.GEMINI_2_0_FLASH_IMAGE.value,
        "audio_model": AudioModel.GEMINI_2_5_FLASH_TTS.value,
        "voice": "Orus",
        "max_attempts": 5,
        "public_dir": "public",
        "host": "0.0.0.0",
        "port": 3000,
    }

    # Environment variables checked, in order, for the Gemini credential
    _api_key_env_vars = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")

    # Cache for config values
    _config_cache: Optional[Dict[str, Any]] = None

    @classmethod
    def get_value(cls, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.
        Checks environment variables first, then config file, then defaults.
        """
        # Check environment variables (with CUENTOS_ prefix)
        env_key = f"CUENTOS_{key.upper()}"
        if env_key in os.environ:
            return os.environ[env_key]

        # Load config if not already loaded
        if cls._config_cache is None:
            cls._load_config()

        # Check config cache
        if key in cls._config_cache:
            return cls._config_cache[key]

        # Check defaults
        if key in cls._defaults:
            return cls._defaults[key]

        # Return provided default or None
        return default

    @classmethod
    def get_int(cls, key: str) -> int:
        return int(cls.get_value(key))

    @classmethod
    def _load_config(cls) -> None:
        """Load configuration from file"""
        cls._config_cache = {}

        config_path = os.environ.get("CUENTOS_CONFIG_PATH", "./config.json")

        try:
            if os.path.exists(config_path):
                with open(config_path, "r") as f:
                    cls._config_cache = json.load(f)
                logger.info(f"Loaded configuration from {config_path}")
            else:
                logger.info("No configuration file found, using defaults")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading configuration: {str(e)}")
            # Continue with empty config and defaults

    @classmethod
    def reset(cls) -> None:
        """Forget the cached config file so the next lookup reloads it"""
        cls._config_cache = None

    @classmethod
    def get_google_api_key(cls) -> Optional[str]:
        for name in cls._api_key_env_vars:
            value = os.environ.get(name, "").strip()
            if value:
                return value
        return None

    @classmethod
    def _model_value(cls, key: str, model_enum) -> str:
        """Configured model name, checked against the models the provider supports"""
        value = cls.get_value(key)
        try:
            return model_enum(value).value
        except ValueError:
            supported = ", ".join(m.value for m in model_enum)
            raise ConfigurationError(f"Unsupported {key} {value!r}; expected one of: {supported}")

    @classmethod
    def generation_config(cls) -> GenerationConfig:
        """Build the pipeline configuration, failing loudly without an API key"""
        api_key = cls.get_google_api_key()
        if not api_key:
            raise ConfigurationError(
                "GEMINI_API_KEY is not set. Create a .env file with "
                "GEMINI_API_KEY=<your key> (API_KEY is accepted as well)."
            )

        return GenerationConfig(
            api_key=api_key,
            text_model=cls._model_value("text_model", TextModel),
            image_model=cls._model_value("image_model", ImageModel),
            audio_model=cls._model_value("audio_model", AudioModel),
            voice=cls.get_value("voice"),
            max_attempts=cls.get_int("max_attempts"),
            public_dir=cls.get_value("public_dir"),
        )
