"""In-memory view of ledger state.

Entries live until a confirmed write invalidates them; there is no expiry.
Per-id entries start out ``raw`` (the undecoded getProduct record) and are
replaced by a decoded entry the first time a single-product read decodes
them. The listing entry holds the assembled product list.

Every invalidation bumps the key's generation. Reads capture the generation
before going to the ledger and store with ``if_generation``; a result that
raced a write is returned to its caller but not cached.

Not locked: the service runs in one process on one event loop and is the
only writer of the contract.
"""

import logging
from dataclasses import dataclass
from typing import Any, Hashable

from chainstock.models.product import RawProduct

logger = logging.getLogger(__name__)

# a tuple, so no product id (always a str) can collide with it
LISTING_KEY = ("products",)


@dataclass
class CacheEntry:
    raw: RawProduct | None = None
    data: Any = None
    decoded: bool = False

    @classmethod
    def from_raw(cls, raw: RawProduct) -> "CacheEntry":
        return cls(raw=raw)

    @classmethod
    def from_decoded(cls, data: Any, raw: RawProduct | None = None) -> "CacheEntry":
        return cls(raw=raw, data=data, decoded=True)


class ProductCache:
    def __init__(self) -> None:
        self._entries: dict[Hashable, CacheEntry] = {}
        self._generations: dict[Hashable, int] = {}
        self._epoch = 0

    def get(self, key: Hashable) -> CacheEntry | None:
        return self._entries.get(key)

    def generation(self, key: Hashable) -> tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def put(self, key: Hashable, entry: CacheEntry,
            if_generation: tuple[int, int] | None = None) -> bool:
        if if_generation is not None and if_generation != self.generation(key):
            logger.debug("Dropping stale read of %s", key)
            return False
        self._entries[key] = entry
        return True

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)
        self._generations[key] = self._generations.get(key, 0) + 1

    def invalidate_write(self, product_id: str) -> None:
        # the listing goes too, even when the id set did not change
        self.invalidate(product_id)
        self.invalidate(LISTING_KEY)
        logger.debug("Invalidated %s and listing", product_id)

    def clear(self) -> None:
        self._entries.clear()
        self._generations.clear()
        self._epoch += 1

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
