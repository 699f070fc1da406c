# media/pagination.py
from __future__ import annotations
import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from common.logging import get_logger
from common.schemas import MediaAsset

log = get_logger("pagination")

Fetch = Callable[[], Awaitable[List[MediaAsset]]]

DEFAULT_WINDOW_SIZE = 20


class PageState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EXHAUSTED = "exhausted"


class PaginationController:
    """
    Incremental window over a deduplicated listing.

    Idle -> (page 1) -> Ready -> ... -> Exhausted. Page 1 rebuilds `all` from
    a fresh listing; later pages only append unseen assets and widen the
    window. One load runs at a time: direct calls made while a load is in
    flight join it, viewport triggers are dropped. A failed load restores
    the previous state and re-raises.
    """

    def __init__(self, fetch: Fetch, window_size: int = DEFAULT_WINDOW_SIZE, *, refetch_pages: bool = True):
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        self._fetch = fetch
        self.window_size = window_size
        self.refetch_pages = refetch_pages
        self.all: List[MediaAsset] = []
        self.loaded_count = 0
        self.page = 0
        self.state = PageState.IDLE
        self._inflight: Optional[asyncio.Future] = None

    # ---------- views ----------
    @property
    def visible(self) -> List[MediaAsset]:
        return self.all[:self.loaded_count]

    @property
    def has_more(self) -> bool:
        if self.state == PageState.IDLE:
            return True
        return self.loaded_count < len(self.all)

    @property
    def fetching(self) -> bool:
        return self._inflight is not None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "page": self.page,
            "window_size": self.window_size,
            "loaded_count": self.loaded_count,
            "total": len(self.all),
            "has_more": self.has_more,
        }

    # ---------- transitions ----------
    def _clear(self) -> None:
        self.all = []
        self.loaded_count = 0
        self.page = 0
        self.state = PageState.IDLE

    async def reset(self) -> List[MediaAsset]:
        """Drop everything and load page 1 from a fresh listing."""
        if self._inflight is not None:
            await asyncio.wait({self._inflight})
        self._clear()
        return await self.load_next_page()

    async def load_next_page(self) -> List[MediaAsset]:
        """Widen the window by one page; returns the newly exposed assets."""
        if self._inflight is not None:
            log.debug(f"[page] load already in flight (page={self.page + 1}); joining it")
            return await asyncio.shield(self._inflight)
        if self.state == PageState.EXHAUSTED:
            return []
        self._inflight = asyncio.ensure_future(self._load())
        return await asyncio.shield(self._inflight)

    async def on_viewport_intersect(self, is_intersecting: bool) -> List[MediaAsset]:
        if not is_intersecting or not self.has_more or self.fetching:
            return []
        log.debug(f"[page] viewport trigger next_page={self.page + 1}")
        return await self.load_next_page()

    async def _load(self) -> List[MediaAsset]:
        prior = (self.state, list(self.all), self.loaded_count, self.page)
        fresh = self.state == PageState.IDLE
        self.state = PageState.LOADING
        try:
            try:
                listing = await self._fetch() if (fresh or self.refetch_pages) else None
            except BaseException as e:
                self.state, self.all, self.loaded_count, self.page = prior
                log.error(f"[page] load of page {self.page + 1} failed, state restored to {self.state.value}: {e!r}")
                raise

            start = 0 if fresh else self.loaded_count
            if fresh:
                self.all = list(dict.fromkeys(listing or []))
                self.loaded_count = min(self.window_size, len(self.all))
            else:
                if listing:
                    known = {a.remote_key for a in self.all}
                    for asset in listing:
                        if asset.remote_key not in known:
                            known.add(asset.remote_key)
                            self.all.append(asset)
                self.loaded_count = min(self.loaded_count + self.window_size, len(self.all))

            self.page += 1
            self.state = PageState.EXHAUSTED if self.loaded_count >= len(self.all) else PageState.READY
            log.info(f"[page] page={self.page} loaded={self.loaded_count}/{len(self.all)} state={self.state.value}")
            return self.all[start:self.loaded_count]
        finally:
            self._inflight = None

    def remove(self, key: str) -> bool:
        """Forget an asset after the store confirmed its deletion."""
        for i, asset in enumerate(self.all):
            if asset.remote_key == key:
                del self.all[i]
                if i < self.loaded_count:
                    self.loaded_count -= 1
                return True
        return False
