"""Named TransformOptions presets persisted to a flat JSON file."""

import json
import logging
import time
import uuid
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class PresetStore:
    """List/append store; the whole file is rewritten on every append."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def list(self) -> list[dict[str, Any]]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read presets from {self.path}: {e}")
            return []
        return data if isinstance(data, list) else []

    def append(self, name: str, options: dict[str, Any]) -> dict[str, Any]:
        preset = {
            "id": str(uuid.uuid4()),
            "name": name,
            "options": options,
            "createdAt": int(time.time() * 1000),
        }
        presets = self.list()
        presets.append(preset)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(presets, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)
        return preset
