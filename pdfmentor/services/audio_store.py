import os
import re
import uuid

SAFE_AUDIO_NAME = re.compile(r"^[0-9a-f]{32}\.(mp3|wav|ogg)$")


class AudioStore:
    def __init__(self, folder: str, url_prefix: str = "/api/audio") -> None:
        self.folder = folder
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.folder, exist_ok=True)

    def save(self, audio_bytes: bytes, audio_format: str = "mp3") -> tuple[str, str]:
        """Write audio to disk and return (filename, public url)."""
        filename = f"{uuid.uuid4().hex}.{audio_format}"
        path = os.path.join(self.folder, filename)

        with open(path, "wb") as f:
            f.write(audio_bytes)

        return filename, f"{self.url_prefix}/{filename}"

    def path_for(self, filename: str):
        if not SAFE_AUDIO_NAME.match(filename or ""):
            return None
        path = os.path.join(self.folder, filename)
        if not os.path.exists(path):
            return None
        return path

    def delete(self, filename: str) -> bool:
        path = self.path_for(filename)
        if path is None:
            return False
        os.remove(path)
        return True
