"""Parse rendered search result feeds into place records."""

from __future__ import annotations

import re
from typing import Any

from selectolax.parser import HTMLParser, Node

from ..config import ResultSelectors
from ..errors import InvalidInputError
from .models import Coordinate, PlaceRecord, SearchArea

_COORD_PATTERN = re.compile(r"!3d(-?\d+(?:\.\d+)?)!4d(-?\d+(?:\.\d+)?)")
_REVIEWS_PATTERN = re.compile(r"\(?\s*([\d.,\s]+)\s*\)?")
_PRICE_PATTERN = re.compile(r"^[$€£¥₹]{1,4}$")
_SEPARATORS = re.compile(r"\s*[·⋅•]\s*")


class PlaceParser:
    """Extract ``PlaceRecord`` objects from a results-feed HTML snapshot."""

    def __init__(self, selectors: ResultSelectors | None = None) -> None:
        self.selectors = selectors or ResultSelectors()

    def parse(
        self,
        html: str,
        *,
        source_url: str | None = None,
        search_term: str | None = None,
        area: SearchArea | None = None,
    ) -> list[PlaceRecord]:
        tree = HTMLParser(html)
        records: list[PlaceRecord] = []
        seen_links: set[str] = set()
        for link in tree.css(self.selectors.card):
            href = (link.attributes.get("href") or "").strip()
            name = (link.attributes.get("aria-label") or "").strip()
            if not name or href in seen_links:
                continue
            if href:
                seen_links.add(href)
            container = self._container(link)
            record = PlaceRecord(
                name=name,
                source_url=href or source_url,
                search_term=search_term,
                coordinates=self._coordinates(href),
            )
            record.rating = self._rating(container)
            record.review_count = self._review_count(container)
            self._apply_details(container, record)
            website = container.css_first(self.selectors.website)
            if website is not None:
                record.website = website.attributes.get("href")
            phone = container.css_first(self.selectors.phone)
            if phone is not None:
                record.phone = phone.text(strip=True) or None
            if area is not None and record.coordinates is not None:
                record.within_area = area.contains(record.coordinates)
            records.append(record)
        return records

    # ------------------------------------------------------------------
    def _container(self, link: Node) -> Node:
        node = link
        for _ in range(self.selectors.card_container_levels):
            if node.parent is None:
                break
            node = node.parent
        return node

    @staticmethod
    def _coordinates(href: str) -> Coordinate | None:
        match = _COORD_PATTERN.search(href or "")
        if not match:
            return None
        try:
            return Coordinate(latitude=float(match.group(1)), longitude=float(match.group(2)))
        except InvalidInputError:
            return None

    def _rating(self, container: Node) -> float | None:
        node = container.css_first(self.selectors.rating)
        if node is None:
            return None
        text = node.text(strip=True).replace(",", ".")
        try:
            return float(text)
        except ValueError:
            return None

    def _review_count(self, container: Node) -> int | None:
        node = container.css_first(self.selectors.review_count)
        if node is None:
            return None
        match = _REVIEWS_PATTERN.search(node.text(strip=True))
        if not match:
            return None
        digits = re.sub(r"[^\d]", "", match.group(1))
        return int(digits) if digits else None

    def _apply_details(self, container: Node, record: PlaceRecord) -> None:
        """Fill category, price, address and opening state from detail lines.

        The first line reads ``Category · $$ · Address``; a later line starts
        with ``Open`` or ``Closed``.
        """

        nodes = container.css(self.selectors.details)
        # only leaf detail nodes carry a single line of text
        wrappers = {ancestor.mem_id for node in nodes for ancestor in _ancestors(node)}
        lines: list[list[str]] = []
        for node in nodes:
            if node.mem_id in wrappers:
                continue
            text = node.text(separator=" ", strip=True)
            parts = [p.strip() for p in _SEPARATORS.split(text) if p.strip()]
            if parts:
                lines.append(parts)
        if not lines:
            return
        first, *rest = lines
        details: dict[str, Any] = {}
        for part in first:
            if _PRICE_PATTERN.match(part):
                details["price_level"] = len(part)
            elif "category" not in details:
                details["category"] = part
            else:
                details["address"] = part
        record.category = details.get("category")
        record.price_level = details.get("price_level")
        record.address = details.get("address", "")
        for parts in rest:
            status = parts[0].lower()
            if status.startswith(("open", "closes")):
                record.is_open = True
                break
            if status.startswith(("closed", "temporarily closed", "permanently closed")):
                record.is_open = False
                break


def _ancestors(node: Node):
    parent = node.parent
    while parent is not None:
        yield parent
        parent = parent.parent


__all__ = ["PlaceParser"]
