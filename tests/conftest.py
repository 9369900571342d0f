import os
import random
import shutil
import tempfile

import pytest

from cuentos.retry import RetryExecutor
from cuentos.settings import GenerationConfig
from cuentos.storage import ArtifactStore
from fakes import RecordingSleep

_session_public_dir = None


def pytest_configure(config):
    # Static routes are mounted at import time of cuentos.main; keep them out of the repo
    global _session_public_dir
    if "CUENTOS_PUBLIC_DIR" not in os.environ:
        _session_public_dir = tempfile.mkdtemp(prefix="cuentos-test-")
        os.environ["CUENTOS_PUBLIC_DIR"] = _session_public_dir


def pytest_unconfigure(config):
    if _session_public_dir:
        shutil.rmtree(_session_public_dir, ignore_errors=True)
        os.environ.pop("CUENTOS_PUBLIC_DIR", None)


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def executor(sleeper):
    return RetryExecutor(max_attempts=5, sleep=sleeper, rng=random.Random(7))


@pytest.fixture
def config(tmp_path):
    return GenerationConfig(
        api_key="test-key",
        text_model="text-model",
        image_model="image-model",
        audio_model="tts-model",
        voice="Orus",
        max_attempts=5,
        public_dir=str(tmp_path / "public"),
    )


@pytest.fixture
def store(config):
    artifact_store = ArtifactStore(config.public_dir)
    artifact_store.ensure_directories()
    return artifact_store
