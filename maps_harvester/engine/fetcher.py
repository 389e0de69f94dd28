"""Render search pages in a headless browser and extract place records."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock, get_ident
from typing import Protocol, Sequence

import structlog

from ..config import BrowserOptions
from ..errors import FetchError, FetchTimeoutError
from ..infra import RotatingPool
from .models import CrawlTask, PlaceRecord, SearchArea
from .parser import PlaceParser

BLOCKED_STATUS_CODES = {401, 403, 429}
CONSENT_HOST_MARKER = "consent.google."


class PageFetcher(Protocol):
    def fetch(self, task: CrawlTask) -> Sequence[PlaceRecord]:
        """Return the records visible for ``task`` or raise FetchError."""


@dataclass
class RenderedPage:
    url: str
    status_code: int
    html: str


class MapsPageFetcher:
    """Fetch a search page per task; deeper pagination means more feed scrolls.

    Every worker thread gets its own Playwright session because the sync
    Playwright API is bound to the thread that started it.
    """

    def __init__(
        self,
        options: BrowserOptions | None = None,
        parser: PlaceParser | None = None,
        area: SearchArea | None = None,
        ua_pool: RotatingPool | None = None,
        proxy_pool: RotatingPool | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.options = options or BrowserOptions()
        self.parser = parser or PlaceParser()
        self.area = area
        self.ua_pool = ua_pool
        self.proxy_pool = proxy_pool
        self.logger = logger or structlog.get_logger("maps_harvester.fetcher")
        self._sessions: dict[int, _PlaywrightSession] = {}
        self._sessions_lock = Lock()

    def fetch(self, task: CrawlTask) -> list[PlaceRecord]:
        scroll_rounds = self.options.scrolls_per_page * task.pagination_depth
        page = self._render(task.url, scroll_rounds)
        if CONSENT_HOST_MARKER in page.url:
            raise FetchError(f"Redirected to consent page: {page.url}", kind="blocked", url=task.url)
        if page.status_code in BLOCKED_STATUS_CODES:
            raise FetchError(f"Blocked with status {page.status_code}", kind="blocked", url=task.url)
        if page.status_code >= 500:
            raise FetchError(f"Unexpected status {page.status_code}", kind="network", url=task.url)
        records = self.parser.parse(
            page.html, source_url=task.url, search_term=task.search_term, area=self.area
        )
        self.logger.debug(
            "page_parsed",
            url=task.url,
            scroll=task.pagination_depth,
            records=len(records),
        )
        return records

    def close(self) -> None:
        with self._sessions_lock:
            for session in self._sessions.values():
                try:
                    session.close()
                except Exception:  # noqa: BLE001
                    self.logger.warning("browser_close_failed", exc_info=True)
            self._sessions.clear()

    # ------------------------------------------------------------------
    def _render(self, url: str, scroll_rounds: int) -> RenderedPage:
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        session = self._ensure_session()
        try:
            return session.render(url, scroll_rounds)
        except PlaywrightTimeoutError as exc:
            raise FetchTimeoutError(f"Playwright timeout: {exc}", url=url) from exc
        except PlaywrightError as exc:
            self._drop_session()
            raise FetchError(f"Playwright error: {exc}", kind="network", url=url) from exc

    def _ensure_session(self) -> "_PlaywrightSession":
        thread_id = get_ident()
        with self._sessions_lock:
            session = self._sessions.get(thread_id)
            if session is None:
                user_agent = self.ua_pool.next() if self.ua_pool else None
                proxy = self.proxy_pool.next() if self.proxy_pool else None
                session = _PlaywrightSession(self.options, self.parser.selectors.feed, user_agent, proxy)
                self._sessions[thread_id] = session
            return session

    def _drop_session(self) -> None:
        with self._sessions_lock:
            session = self._sessions.pop(get_ident(), None)
        if session is not None:
            try:
                session.close()
            except Exception:  # noqa: BLE001
                self.logger.warning("browser_close_failed", exc_info=True)


class _PlaywrightSession:
    def __init__(
        self,
        options: BrowserOptions,
        feed_selector: str,
        user_agent: str | None,
        proxy: str | None,
    ) -> None:
        self._options = options
        self._feed_selector = feed_selector
        self._user_agent = user_agent
        self._proxy = proxy
        self._lock = Lock()
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    def _ensure_started(self) -> None:
        if self._playwright is not None:
            return
        from playwright.sync_api import sync_playwright

        self._playwright = sync_playwright().start()
        launch_kwargs: dict = {"headless": self._options.headless}
        if self._proxy:
            launch_kwargs["proxy"] = {"server": self._proxy}
        self._browser = self._playwright.chromium.launch(**launch_kwargs)
        width, height = self._options.viewport_size
        self._context = self._browser.new_context(
            user_agent=self._user_agent,
            locale=self._options.locale,
            viewport={"width": width, "height": height},
        )
        self._page = self._context.new_page()

    def render(self, url: str, scroll_rounds: int) -> RenderedPage:
        timeout_ms = self._options.navigation_timeout_ms
        pause_ms = self._options.scroll_pause_ms
        with self._lock:
            self._ensure_started()
            response = self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            status_code = response.status if response else 200
            if status_code < 400 and CONSENT_HOST_MARKER not in self._page.url:
                self._page.wait_for_selector(self._feed_selector, timeout=timeout_ms)
                feed = self._page.locator(self._feed_selector).first
                for _ in range(max(0, scroll_rounds)):
                    feed.evaluate("el => el.scrollTo(0, el.scrollHeight)")
                    self._page.wait_for_timeout(pause_ms)
            return RenderedPage(url=self._page.url, status_code=status_code, html=self._page.content())

    def close(self) -> None:
        with self._lock:
            if self._page is not None:
                self._page.close()
                self._page = None
            if self._context is not None:
                self._context.close()
                self._context = None
            if self._browser is not None:
                self._browser.close()
                self._browser = None
            if self._playwright is not None:
                self._playwright.stop()
                self._playwright = None


__all__ = ["MapsPageFetcher", "PageFetcher", "RenderedPage"]
