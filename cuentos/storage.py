import logging
import os
import time
import uuid

logger = logging.getLogger("cuentos-app")


class ArtifactStore:
    """Write-once local storage for generated images and audio.

    Files land in ``<public_dir>/<images_subdir>`` and ``<public_dir>/<audio_subdir>``
    and are referenced by the relative URL the static file routes serve them under.
    """

    def __init__(self, public_dir: str, images_subdir: str = "images", audio_subdir: str = "audio"):
        self.public_dir = os.path.abspath(public_dir)
        self.images_subdir = images_subdir
        self.audio_subdir = audio_subdir
        self.images_dir = os.path.join(self.public_dir, images_subdir)
        self.audio_dir = os.path.join(self.public_dir, audio_subdir)

    def ensure_directories(self) -> None:
        for path in (self.public_dir, self.images_dir, self.audio_dir):
            os.makedirs(path, exist_ok=True)

    @staticmethod
    def _unique_stem(prefix: str) -> str:
        # Millisecond timestamp plus a random fragment keeps concurrent requests apart
        return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"

    def _write(self, subdir: str, filename: str, file_data: bytes) -> str:
        path = os.path.join(self.public_dir, subdir, filename)
        # "xb" refuses to overwrite an existing artifact
        with open(path, "xb") as f:
            f.write(file_data)
        logger.info(f"Saved {len(file_data)} bytes to {path}")
        return f"/{subdir}/{filename}"

    def save_image(self, file_data: bytes, index: int) -> str:
        """Store a PNG for the 1-based scene ``index`` and return its URL path"""
        filename = f"{self._unique_stem('cuento_ilustrado')}_{index}.png"
        return self._write(self.images_subdir, filename, file_data)

    def save_audio(self, file_data: bytes) -> str:
        """Store a WAV narration and return its URL path"""
        filename = f"{self._unique_stem('cuento_audio')}.wav"
        return self._write(self.audio_subdir, filename, file_data)

    def path_for(self, url: str) -> str:
        """Filesystem path of an artifact given its URL path"""
        return os.path.join(self.public_dir, *url.strip("/").split("/"))
