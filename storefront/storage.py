import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List

from decouple import config

from .cart import CartLine

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "hanky_corner_cart"


def default_data_dir() -> Path:
    return Path(config("STOREFRONT_DATA_DIR", default=str(Path.home() / ".hanky_corner")))


class JSONFileStorage:
    """
    Persists cart lines as JSON in ``<data dir>/<key>.json``.
    A missing file is an empty cart; a corrupt one is logged and treated
    as empty so the shopper can keep going.
    """

    def __init__(self, directory=None, key: str = CART_STORAGE_KEY):
        self.key = key
        self.path = Path(directory or default_data_dir()) / f"{key}.json"

    def load(self) -> List[CartLine]:
        try:
            raw = self.path.read_text(encoding="utf-8")
            return [CartLine.from_dict(item) for item in json.loads(raw)]
        except FileNotFoundError:
            return []
        except (ValueError, TypeError, KeyError, ArithmeticError) as e:
            logger.warning("Discarding unreadable cart at %s: %s", self.path, e)
            return []

    def save(self, lines: List[CartLine]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([line.to_dict() for line in lines], indent=2)

        # Readers see either the old cart or the new one, never a partial write.
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.key}-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def clear(self):
        if self.path.exists():
            self.path.unlink()
