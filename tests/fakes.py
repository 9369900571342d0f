from types import SimpleNamespace

from cuentos.model_providers import ModelProvider

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"
AUDIO_MIME = "audio/L16;codec=pcm;rate=24000"


def text_part(text):
    return SimpleNamespace(text=text, inline_data=None)


def inline_part(data, mime_type="image/png"):
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))


def make_response(*parts):
    """A generate_content-shaped response with one candidate holding ``parts``"""
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def empty_response():
    return SimpleNamespace(candidates=[])


class FakeProvider(ModelProvider):
    """Provider double.

    Each capability takes either a list of responses consumed in order or a
    callable receiving the prompt. Exceptions (in the list or raised by the
    callable) surface as transport failures.
    """

    def __init__(self, text=None, image=None, speech=None):
        super().__init__("fake")
        self._responders = {"text": text, "image": image, "speech": speech}
        self.calls = []

    def _respond(self, kind, prompt):
        self.calls.append((kind, prompt))
        responder = self._responders[kind]
        if callable(responder):
            return responder(prompt)
        if not responder:
            raise AssertionError(f"unexpected {kind} call")
        item = responder.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def count(self, kind):
        return sum(1 for k, _ in self.calls if k == kind)

    async def generate_text(self, prompt, model, **kwargs):
        return self._respond("text", prompt)

    async def generate_image(self, prompt, model, **kwargs):
        return self._respond("image", prompt)

    async def generate_speech(self, text, model, voice, **kwargs):
        return self._respond("speech", text)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
