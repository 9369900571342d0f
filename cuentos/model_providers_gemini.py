"""
Gemini provider implementation for the model provider system
"""

import time
from typing import Any

from google import genai
from google.genai import types

from cuentos.model_providers import ModelProvider


class GeminiProvider(ModelProvider):
    """Gemini provider for text, image, and audio generation"""

    def __init__(self, api_key: str):
        super().__init__("gemini")
        if not api_key:
            raise ValueError("Google API key is required for the Gemini provider")

        self.client = genai.Client(api_key=api_key)
        self.logger.info("Gemini client initialized with google-genai package")

    async def _generate(self, operation: str, model: str, contents: Any, config=None, **log_kwargs) -> Any:
        """Run one generate_content call on the async client, logging its outcome"""
        start_time = time.time()
        self._log_request(operation, model, **log_kwargs)

        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            self._log_response(operation, model, time.time() - start_time, error=str(e))
            raise

        candidates = getattr(response, "candidates", None) or []
        self._log_response(operation, model, time.time() - start_time, candidates=len(candidates))
        return response

    async def generate_text(self, prompt: str, model: str, **kwargs) -> Any:
        return await self._generate(
            "text_generation", model, prompt, prompt_length=len(prompt)
        )

    async def generate_image(self, prompt: str, model: str, **kwargs) -> Any:
        config = types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"])
        return await self._generate(
            "image_generation", model, prompt, config=config, prompt_length=len(prompt)
        )

    async def generate_speech(self, text: str, model: str, voice: str, **kwargs) -> Any:
        # Build the speech config using the google-genai types
        speech_config = types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(
                    voice_name=voice
                )
            )
        )
        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=speech_config,
        )
        return await self._generate(
            "audio_generation", model, text, config=config, text_length=len(text), voice=voice
        )
