import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

from dotenv import load_dotenv

load_dotenv()

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from cuentos.models import (
    ErrorResponse,
    GenerationRequest,
    StoryAudioResponse,
    StoryImagesResponse,
)
from cuentos.narrative_engine import TaleFactory
from cuentos.settings import AppConfig
from cuentos.storage import ArtifactStore

logger = logging.getLogger("cuentos-app")

MISSING_PARAMS_ERROR = "Faltan parámetros: personaje, lugar y objeto son obligatorios."
STORY_IMAGES_ERROR = "Hubo un error al generar el cuento y la imagen."
STORY_AUDIO_ERROR = "Hubo un error al generar el cuento, la imagen y el audio."

# Images served with the short story, and the narrated variant
STORY_IMAGE_COUNT = 1
AUDIO_STORY_IMAGE_COUNT = 3

# Static routes need their directories before the app is assembled
store = ArtifactStore(AppConfig.get_value("public_dir"))
store.ensure_directories()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuses to start without GEMINI_API_KEY
    config = AppConfig.generation_config()
    app.state.factory = TaleFactory(config, store=store)
    logger.info(
        f"Story pipeline ready: text={config.text_model}, image={config.image_model}, "
        f"audio={config.audio_model}, voice={config.voice}, max_attempts={config.max_attempts}"
    )
    yield


app = FastAPI(
    title="Cuentos Ilustrados API",
    description="Short stories with Gemini illustrations and narration",
    version="1.0.0",
    lifespan=lifespan,
)

app.mount(f"/{store.images_subdir}", StaticFiles(directory=store.images_dir), name="images")
app.mount(f"/{store.audio_subdir}", StaticFiles(directory=store.audio_dir), name="audio")


def get_factory(request: Request) -> TaleFactory:
    return request.app.state.factory


def _absolute_url(request: Request, path: str) -> str:
    return f"{str(request.base_url).rstrip('/')}{path}"


def _generation_request(
    personaje: Optional[str], lugar: Optional[str], objeto: Optional[str], num_images: int
) -> Optional[GenerationRequest]:
    try:
        return GenerationRequest(
            personaje=personaje, lugar=lugar, objeto=objeto, num_images=num_images
        )
    except ValidationError:
        return None


@app.get(
    "/create-story",
    response_model=StoryImagesResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_story_endpoint(
    request: Request,
    personaje: Optional[str] = None,
    lugar: Optional[str] = None,
    objeto: Optional[str] = None,
    factory: TaleFactory = Depends(get_factory),
):
    generation_request = _generation_request(personaje, lugar, objeto, STORY_IMAGE_COUNT)
    if generation_request is None:
        return JSONResponse(status_code=400, content={"error": MISSING_PARAMS_ERROR})

    try:
        result = await factory.create_story_with_images(generation_request)
    except Exception:
        logger.exception("Story and image generation failed")
        return JSONResponse(status_code=500, content={"error": STORY_IMAGES_ERROR})

    return StoryImagesResponse(
        cuento=result.story,
        imageUrls=[_absolute_url(request, url) for url in result.image_urls],
    )


@app.get(
    "/create-story-audio",
    response_model=StoryAudioResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_story_audio_endpoint(
    request: Request,
    personaje: Optional[str] = None,
    lugar: Optional[str] = None,
    objeto: Optional[str] = None,
    factory: TaleFactory = Depends(get_factory),
):
    generation_request = _generation_request(personaje, lugar, objeto, AUDIO_STORY_IMAGE_COUNT)
    if generation_request is None:
        return JSONResponse(status_code=400, content={"error": MISSING_PARAMS_ERROR})

    try:
        result = await factory.create_story_with_audio(generation_request)
    except Exception:
        logger.exception("Story, image and audio generation failed")
        return JSONResponse(status_code=500, content={"error": STORY_AUDIO_ERROR})

    return StoryAudioResponse(
        cuento=result.story,
        imageUrls=[_absolute_url(request, url) for url in result.image_urls],
        audioUrl=_absolute_url(request, result.audio_url),
    )


@app.get("/")
def read_root():
    return {"message": "Cuentos Ilustrados FastAPI app is running!"}
