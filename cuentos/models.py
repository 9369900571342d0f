from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GenerationRequest(BaseModel):
    """Inputs for one story: who, where, with what, and how many illustrations"""

    model_config = ConfigDict(frozen=True)

    personaje: str
    lugar: str
    objeto: str
    num_images: int = Field(1, ge=1)

    @field_validator("personaje", "lugar", "objeto")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class PromptSource(str, Enum):
    MODEL = "model"
    FALLBACK = "fallback"


class ScenePrompts(BaseModel):
    prompts: List[str]
    source: PromptSource


class IllustrationOutcome(BaseModel):
    index: int  # 1-based position in the prompt list
    prompt: str
    url: Optional[str] = None
    attempts: int = 0

    @property
    def skipped(self) -> bool:
        return self.url is None


class IllustrationBatch(BaseModel):
    outcomes: List[IllustrationOutcome] = []

    @property
    def image_urls(self) -> List[str]:
        return [o.url for o in self.outcomes if o.url is not None]

    @property
    def skipped(self) -> List[IllustrationOutcome]:
        return [o for o in self.outcomes if o.skipped]


class TaleResult(BaseModel):
    story: str
    scene_prompts: ScenePrompts
    illustrations: IllustrationBatch
    audio_url: Optional[str] = None
    metrics: Dict[str, Any] = {}

    @property
    def image_urls(self) -> List[str]:
        return self.illustrations.image_urls


# --- API responses ---
class StoryImagesResponse(BaseModel):
    cuento: str
    imageUrls: List[str]


class StoryAudioResponse(StoryImagesResponse):
    audioUrl: str


class ErrorResponse(BaseModel):
    error: str
