"""
Model provider system for the generative capabilities the story pipeline uses:
text, image and speech synthesis.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict

# Configure logging
logger = logging.getLogger("cuentos-app")


class TextModel(str, Enum):
    """Available text generation models"""
    GEMINI_2_5_FLASH = "gemini-2.5-flash"
    GEMINI_2_5_FLASH_LITE = "gemini-2.5-flash-lite"


class ImageModel(str, Enum):
    """Available image generation models"""
    GEMINI_2_0_FLASH_IMAGE = "gemini-2.0-flash-preview-image-generation"
    GEMINI_2_5_FLASH_IMAGE = "gemini-2.5-flash-image"


class AudioModel(str, Enum):
    """Available audio generation models"""
    GEMINI_2_5_FLASH_TTS = "gemini-2.5-flash-preview-tts"
    GEMINI_2_5_PRO_TTS = "gemini-2.5-pro-preview-tts"


class ModelProvider(ABC):
    """Abstract base class for AI model providers.

    Every operation returns the provider's raw response object; deciding whether
    a response is usable is left to the pipeline stages.
    """

    def __init__(self, provider_name: str):
        self.provider_name = provider_name
        self.logger = logging.getLogger(f"cuentos-app.{provider_name}")

    @abstractmethod
    async def generate_text(self, prompt: str, model: str, **kwargs) -> Any:
        """Generate free text"""
        pass

    @abstractmethod
    async def generate_image(self, prompt: str, model: str, **kwargs) -> Any:
        """Generate an image returned as inline data"""
        pass

    @abstractmethod
    async def generate_speech(self, text: str, model: str, voice: str, **kwargs) -> Any:
        """Synthesize speech returned as inline raw audio"""
        pass

    def _log_request(self, operation: str, model: str, **kwargs):
        """Log provider request for monitoring"""
        self.logger.info(f"{operation} request: provider={self.provider_name}, model={model}, kwargs={kwargs}")

    def _log_response(self, operation: str, model: str, duration: float, candidates: int = 0, error: str = None):
        """Log provider response for monitoring"""
        if error:
            self.logger.error(f"{operation} error: provider={self.provider_name}, model={model}, duration={duration:.2f}s, error={error}")
        else:
            self.logger.info(f"{operation} success: provider={self.provider_name}, model={model}, duration={duration:.2f}s, candidates={candidates}")


class ModelProviderFactory:
    """Factory for creating model provider instances"""

    _providers: Dict[str, ModelProvider] = {}

    @classmethod
    def get_provider(cls, provider_name: str, api_key: str) -> ModelProvider:
        """Get or create provider instance"""
        if provider_name not in cls._providers:
            if provider_name == "gemini":
                from cuentos.model_providers_gemini import GeminiProvider
                cls._providers[provider_name] = GeminiProvider(api_key)
            else:
                raise ValueError(f"Unknown provider: {provider_name}")

        return cls._providers[provider_name]

    @classmethod
    def clear(cls) -> None:
        cls._providers.clear()
