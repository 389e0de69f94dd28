from __future__ import annotations

import pytest

from maps_harvester.engine import MapsPageFetcher
from maps_harvester.engine.fetcher import RenderedPage
from maps_harvester.errors import FetchError

CARD = (
    '<div role="feed"><div><a class="hfpxzc" aria-label="Kiosk" '
    'href="https://www.google.com/maps/place/Kiosk/data=!3d52.52!4d13.405"></a></div></div>'
)


def patch_render(monkeypatch: pytest.MonkeyPatch, page: RenderedPage, calls: list) -> None:
    def fake_render(self, url: str, scroll_rounds: int) -> RenderedPage:
        calls.append((url, scroll_rounds))
        return page

    monkeypatch.setattr(MapsPageFetcher, "_render", fake_render)


def test_fetch_parses_page_and_scales_scrolls(monkeypatch, make_task) -> None:
    calls: list = []
    task = make_task(depth=2)
    patch_render(monkeypatch, RenderedPage(url=task.url, status_code=200, html=CARD), calls)

    records = MapsPageFetcher().fetch(task)

    assert [r.name for r in records] == ["Kiosk"]
    assert records[0].search_term == "coffee"
    assert calls == [(task.url, 6)]


@pytest.mark.parametrize(
    ("page_url", "status", "kind"),
    [
        ("https://consent.google.com/ml?continue=x", 200, "blocked"),
        (None, 429, "blocked"),
        (None, 403, "blocked"),
        (None, 502, "network"),
    ],
)
def test_fetch_classifies_bad_responses(monkeypatch, make_task, page_url, status, kind) -> None:
    task = make_task()
    patch_render(monkeypatch, RenderedPage(url=page_url or task.url, status_code=status, html=""), [])

    with pytest.raises(FetchError) as excinfo:
        MapsPageFetcher().fetch(task)
    assert excinfo.value.kind == kind
    assert excinfo.value.url == task.url


def test_close_without_sessions_is_noop() -> None:
    fetcher = MapsPageFetcher()
    fetcher.close()
    fetcher.close()
