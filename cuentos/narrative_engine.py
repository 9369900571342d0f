"""
Story pipeline: story text -> scene prompts -> illustrations -> (optional) narration.

Each stage performs a single kind of remote call through ``RetryExecutor`` and
decides, per response, whether it is usable. Stages receive their configuration
explicitly so they can be exercised with fake providers.
"""

import json
import logging
import uuid
from functools import partial
from typing import Any, List, Optional, Tuple

import numpy as np

from cuentos.audio import (
    decode_inline_data,
    encode_wav,
    parse_sample_rate,
    pcm16_to_float,
)
from cuentos.model_providers import ModelProvider, ModelProviderFactory
from cuentos.models import (
    GenerationRequest,
    IllustrationBatch,
    IllustrationOutcome,
    PromptSource,
    ScenePrompts,
    TaleResult,
)
from cuentos.monitoring import MetricsCollector
from cuentos.retry import Attempt, RetryExecutor
from cuentos.settings import GenerationConfig
from cuentos.storage import ArtifactStore

logger = logging.getLogger("cuentos-app")


class PipelineError(Exception):
    """A required stage produced nothing usable"""


class StoryGenerationError(PipelineError):
    pass


class IllustrationError(PipelineError):
    pass


class NarrationError(PipelineError):
    pass


# --- Response helpers ---
def _candidates(response) -> list:
    return list(getattr(response, "candidates", None) or [])


def _parts(response) -> list:
    candidates = _candidates(response)
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def first_text(response) -> Optional[str]:
    """Text of the first candidate, or None when there is none"""
    for part in _parts(response):
        text = getattr(part, "text", None)
        if text:
            return text
    return None


def _inline_parts(response) -> list:
    return [
        part.inline_data
        for part in _parts(response)
        if getattr(part, "inline_data", None) is not None
    ]


class _Stage:
    def __init__(
        self,
        provider: ModelProvider,
        config: GenerationConfig,
        executor: Optional[RetryExecutor] = None,
    ):
        self.provider = provider
        self.config = config
        self.executor = executor or RetryExecutor(config.max_attempts)


class StoryStage(_Stage):
    PROMPT_TEMPLATE = (
        "Crea un cuento corto y original de aproximadamente 200 palabras. "
        "La historia debe incluir a un {personaje} en {lugar} con un {objeto}. "
        "El cuento debe tener un inicio, un desarrollo y un final."
    )

    @classmethod
    def build_prompt(cls, personaje: str, lugar: str, objeto: str) -> str:
        return cls.PROMPT_TEMPLATE.format(personaje=personaje, lugar=lugar, objeto=objeto)

    @staticmethod
    def evaluate(response) -> Attempt:
        if not _candidates(response):
            return Attempt.retry("no candidates in response")
        text = first_text(response)
        if not text:
            return Attempt.retry("candidate has no text")
        return Attempt.accept(text)

    async def run(self, request: GenerationRequest) -> str:
        prompt = self.build_prompt(request.personaje, request.lugar, request.objeto)
        outcome = await self.executor.run(
            partial(self.provider.generate_text, prompt, self.config.text_model),
            self.evaluate,
            label="story generation",
        )
        if outcome.exhausted:
            raise StoryGenerationError(
                f"story generation failed after {outcome.attempts} attempts"
            )
        return outcome.value


class ScenePromptStage(_Stage):
    """Asks the model to split a story into illustration prompts"""

    PROMPT_TEMPLATE = (
        "Given the following story, identify {count} key scenes that would make good illustrations.\n"
        "For each scene, provide a detailed, single-sentence image prompt.\n"
        "The response should be a JSON array of strings. Each string is a prompt.\n"
        'Story: "{story}"'
    )

    FALLBACK_TEMPLATES = (
        "Render 3D de alta calidad, que muestre la escena principal del cuento: {excerpt}...",
        "Render 3D de alta calidad, que muestre una escena de acción del cuento: {excerpt}...",
        "Render 3D de alta calidad, que muestre el final feliz del cuento: {excerpt}...",
    )

    @classmethod
    def build_prompt(cls, story: str, count: int) -> str:
        return cls.PROMPT_TEMPLATE.format(count=count, story=story)

    @staticmethod
    def extract_prompt_list(text: str) -> List[str]:
        """Pull a non-empty JSON array of strings out of free model text.

        Raises ValueError when no such array can be found.
        """
        start = text.find("[")
        if start == -1:
            raise ValueError("no JSON array in response")
        cleaned = text[start:].replace("```json", "").replace("```", "").strip()
        # raw_decode tolerates trailing prose after the array
        prompts, _ = json.JSONDecoder().raw_decode(cleaned)
        if not isinstance(prompts, list) or not prompts:
            raise ValueError("expected a non-empty JSON array")
        if not all(isinstance(p, str) for p in prompts):
            raise ValueError("array entries must be strings")
        return prompts

    @classmethod
    def fallback_prompts(cls, story: str) -> List[str]:
        return [
            template.format(excerpt=story[i * 50:(i + 1) * 50])
            for i, template in enumerate(cls.FALLBACK_TEMPLATES)
        ]

    def _evaluate(self, count: int, response) -> Attempt:
        text = first_text(response)
        if text is None:
            return Attempt.retry("no prompt text in response")
        try:
            prompts = self.extract_prompt_list(text)
        except ValueError as e:
            # Re-ask straight away; the service answered, the format was off
            return Attempt.retry(f"could not parse prompts: {e}", backoff=False)
        return Attempt.accept(prompts[:count])

    async def run(self, story: str, count: int) -> ScenePrompts:
        outcome = await self.executor.run(
            partial(self.provider.generate_text, self.build_prompt(story, count), self.config.text_model),
            partial(self._evaluate, count),
            label="scene prompt generation",
        )
        if outcome.exhausted:
            logger.warning("Could not generate scene prompts, using generic prompts")
            return ScenePrompts(
                prompts=self.fallback_prompts(story)[:count],
                source=PromptSource.FALLBACK,
            )
        return ScenePrompts(prompts=outcome.value, source=PromptSource.MODEL)


class IllustrationStage(_Stage):
    def __init__(self, provider, config, store: ArtifactStore, executor=None):
        super().__init__(provider, config, executor)
        self.store = store

    @staticmethod
    def evaluate(response) -> Attempt:
        if not _candidates(response):
            return Attempt.retry("no candidates in response")
        for inline_data in _inline_parts(response):
            if not getattr(inline_data, "data", None):
                continue
            try:
                return Attempt.accept(decode_inline_data(inline_data.data))
            except ValueError as e:
                return Attempt.retry(f"undecodable image data: {e}")
        return Attempt.retry("no image data in response")

    async def run(self, prompts: List[str]) -> IllustrationBatch:
        batch = IllustrationBatch()
        total = len(prompts)

        # One at a time: each scene gets its own retry budget
        for index, prompt in enumerate(prompts, start=1):
            outcome = await self.executor.run(
                partial(self.provider.generate_image, prompt, self.config.image_model),
                self.evaluate,
                label=f"illustration {index}/{total}",
            )
            result = IllustrationOutcome(index=index, prompt=prompt, attempts=outcome.attempts)
            if outcome.exhausted:
                logger.warning(f"Skipping illustration {index}/{total}: no image after {outcome.attempts} attempts")
            else:
                result.url = self.store.save_image(outcome.value, index)
                logger.info(f"--- Illustration generated ({index}/{total}): {result.url}")
            batch.outcomes.append(result)

        if not batch.image_urls:
            raise IllustrationError(f"no images generated for {total} scene prompts")
        return batch


class NarrationStage(_Stage):
    def __init__(self, provider, config, store: ArtifactStore, executor=None):
        super().__init__(provider, config, executor)
        self.store = store

    @staticmethod
    def evaluate(response) -> Attempt:
        if not _candidates(response):
            return Attempt.retry("no candidates in response")
        return Attempt.accept(response)

    @staticmethod
    def decode_narration(response) -> Tuple[np.ndarray, int]:
        """Float samples and sample rate of the first audio part of ``response``"""
        audio = next(
            (
                inline_data
                for inline_data in _inline_parts(response)
                if (getattr(inline_data, "mime_type", None) or "").startswith("audio/")
            ),
            None,
        )
        if audio is None or not audio.data:
            raise NarrationError("speech response contains no audio data")

        try:
            sample_rate = parse_sample_rate(audio.mime_type)
            pcm_data = decode_inline_data(audio.data)
        except ValueError as e:
            raise NarrationError(f"unusable audio payload: {e}") from e

        logger.info(f"Received {len(pcm_data)} bytes of PCM audio at {sample_rate} Hz")
        return pcm16_to_float(pcm_data), sample_rate

    async def run(self, story: str) -> str:
        outcome = await self.executor.run(
            partial(self.provider.generate_speech, story, self.config.audio_model, self.config.voice),
            self.evaluate,
            label="narration",
        )
        # An exhausted loop still gets a look at the last response
        response: Any = outcome.value if outcome.succeeded else outcome.last_response
        if response is None:
            raise NarrationError(f"no speech response after {outcome.attempts} attempts")

        samples, sample_rate = self.decode_narration(response)
        audio_url = self.store.save_audio(encode_wav(samples, sample_rate))
        logger.info(f"--- Narration generated: {audio_url}")
        return audio_url


class TaleFactory:
    """Chains the stages into the two products the service offers"""

    def __init__(
        self,
        config: GenerationConfig,
        provider: Optional[ModelProvider] = None,
        store: Optional[ArtifactStore] = None,
        executor: Optional[RetryExecutor] = None,
    ):
        self.config = config
        self.provider = provider or ModelProviderFactory.get_provider("gemini", config.api_key)
        self.store = store or ArtifactStore(config.public_dir)
        self.story_stage = StoryStage(self.provider, config, executor)
        self.scene_prompt_stage = ScenePromptStage(self.provider, config, executor)
        self.illustration_stage = IllustrationStage(self.provider, config, self.store, executor)
        self.narration_stage = NarrationStage(self.provider, config, self.store, executor)

    async def _story_and_images(self, request: GenerationRequest, metrics: MetricsCollector) -> TaleResult:
        logger.info(f"[{metrics.request_id}] Starting generation with {self.config.text_model}")

        async with metrics.stage("story"):
            story = await self.story_stage.run(request)
        logger.info(f"[{metrics.request_id}] --- Generated story ---\n{story}")

        async with metrics.stage("scene_prompts"):
            scene_prompts = await self.scene_prompt_stage.run(story, request.num_images)
        if scene_prompts.source == PromptSource.FALLBACK:
            metrics.increment("scene_prompt_fallbacks")

        async with metrics.stage("illustrations"):
            illustrations = await self.illustration_stage.run(scene_prompts.prompts)
        metrics.record_illustrations(illustrations)

        return TaleResult(story=story, scene_prompts=scene_prompts, illustrations=illustrations)

    async def create_story_with_images(self, request: GenerationRequest) -> TaleResult:
        metrics = MetricsCollector(uuid.uuid4().hex[:8])
        try:
            result = await self._story_and_images(request, metrics)
        finally:
            metrics.log_summary()
        result.metrics = metrics.get_metrics()
        return result

    async def create_story_with_audio(self, request: GenerationRequest) -> TaleResult:
        metrics = MetricsCollector(uuid.uuid4().hex[:8])
        try:
            result = await self._story_and_images(request, metrics)
            if not result.story:
                raise NarrationError("no story available to narrate")

            async with metrics.stage("narration"):
                result.audio_url = await self.narration_stage.run(result.story)
        finally:
            metrics.log_summary()
        result.metrics = metrics.get_metrics()
        return result
