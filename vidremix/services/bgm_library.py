"""Background music library: picks one track from an operator-curated directory."""

import logging
import random
from pathlib import Path

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {".mp3", ".wav", ".m4a", ".aac", ".ogg"}


class BgmLibrary:
    """Enumerates audio files in a directory and picks one at random.

    An empty or missing directory is a normal state: ``pick()`` returns None
    and callers fall back to the unmixed path.
    """

    def __init__(self, directory: Path, rng: random.Random | None = None):
        self.directory = Path(directory)
        self._rng = rng or random.Random()

    def list_tracks(self) -> list[Path]:
        try:
            entries = sorted(self.directory.iterdir())
        except OSError:
            return []
        return [p for p in entries if p.is_file() and p.suffix.lower() in AUDIO_EXTENSIONS]

    def pick(self) -> Path | None:
        tracks = self.list_tracks()
        if not tracks:
            logger.info(f"No background music in {self.directory}, mixing skipped")
            return None
        return self._rng.choice(tracks)
