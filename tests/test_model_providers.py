import asyncio
from unittest import mock

import pytest

from cuentos.model_providers import ModelProviderFactory
from fakes import make_response, text_part


@pytest.fixture
def genai_client():
    ModelProviderFactory.clear()
    with mock.patch("cuentos.model_providers_gemini.genai.Client") as client_cls:
        client = client_cls.return_value
        client.aio.models.generate_content = mock.AsyncMock(return_value=make_response(text_part("hola")))
        yield client_cls
    ModelProviderFactory.clear()


def test_factory_caches_the_gemini_provider(genai_client):
    first = ModelProviderFactory.get_provider("gemini", "key")
    second = ModelProviderFactory.get_provider("gemini", "key")

    assert first is second
    genai_client.assert_called_once_with(api_key="key")


def test_factory_rejects_unknown_providers():
    with pytest.raises(ValueError):
        ModelProviderFactory.get_provider("openai", "key")


def test_text_request_is_passed_through(genai_client):
    provider = ModelProviderFactory.get_provider("gemini", "key")

    response = asyncio.run(provider.generate_text("Cuéntame algo", "gemini-2.5-flash"))

    assert response.candidates[0].content.parts[0].text == "hola"
    genai_client.return_value.aio.models.generate_content.assert_awaited_once_with(
        model="gemini-2.5-flash", contents="Cuéntame algo", config=None
    )


def test_image_request_asks_for_image_and_text(genai_client):
    provider = ModelProviderFactory.get_provider("gemini", "key")

    asyncio.run(provider.generate_image("a dragon", "image-model"))

    config = genai_client.return_value.aio.models.generate_content.await_args.kwargs["config"]
    assert config.response_modalities == ["IMAGE", "TEXT"]


def test_speech_request_uses_prebuilt_voice(genai_client):
    provider = ModelProviderFactory.get_provider("gemini", "key")

    asyncio.run(provider.generate_speech("Había una vez", "tts-model", "Orus"))

    config = genai_client.return_value.aio.models.generate_content.await_args.kwargs["config"]
    assert config.response_modalities == ["AUDIO"]
    assert config.speech_config.voice_config.prebuilt_voice_config.voice_name == "Orus"


def test_transport_errors_propagate(genai_client):
    genai_client.return_value.aio.models.generate_content.side_effect = ConnectionError("down")
    provider = ModelProviderFactory.get_provider("gemini", "key")

    with pytest.raises(ConnectionError):
        asyncio.run(provider.generate_text("hola", "text-model"))
