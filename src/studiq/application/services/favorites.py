# src/studiq/application/services/favorites.py
import json
import logging
from typing import List

from studiq.infrastructure.storage import ClientStorage

log = logging.getLogger(__name__)

DEFAULT_FAVORITES_KEY = "crypto-favorites"


class FavoritesStore:
    """
    Persists the favourite coin ids as a JSON list.
    Neither method raises: a broken or unreachable store reads as empty and a
    failed write is only logged, leaving the in-memory list authoritative.
    """

    def __init__(self, storage: ClientStorage, key: str = DEFAULT_FAVORITES_KEY):
        self.storage = storage
        self.key = key

    def load(self) -> List[str]:
        try:
            raw = self.storage.get_item(self.key)
        except Exception as e:
            log.error(f"Failed to read favorites from storage: {e}")
            return []
        if not raw:
            return []

        try:
            favorites = json.loads(raw)
        except (TypeError, ValueError) as e:
            log.error(f"Failed to parse favorites from storage: {e}")
            return []
        if not isinstance(favorites, list):
            log.error(f"Stored favorites under '{self.key}' are not a list; ignoring.")
            return []

        # De-duplicate while keeping the user's order
        seen = set()
        result = []
        for coin_id in favorites:
            if isinstance(coin_id, str) and coin_id not in seen:
                seen.add(coin_id)
                result.append(coin_id)
        return result

    def save(self, favorites: List[str]) -> bool:
        try:
            self.storage.set_item(self.key, json.dumps(list(favorites)))
            return True
        except Exception as e:
            log.error(f"Failed to save favorites to storage: {e}")
            return False
