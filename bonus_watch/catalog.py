from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import requests

from .config import CATALOG_PRODUCT_URL, CATALOG_TIMEOUT_SECONDS
from .errors import CatalogUnavailable, EntityNotFound
from .utils import HTTPError, get_http_session, retryable_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    id: int
    title: str
    brand: str = ""
    summary: str = ""
    price_now: float = 0.0
    orderable: bool = False
    promotion_theme: str = ""          # "" means not on promotion, e.g. "bonus"
    promotion_badge_text: str = ""     # e.g. "1 + 1 gratis"; only meaningful on promotion
    promotion_start_date: Optional[_dt.date] = None
    promotion_end_date: Optional[_dt.date] = None
    thumbnail_url: str = ""

    @property
    def on_promotion(self) -> bool:
        return self.promotion_theme != ""


@retryable_request
def _get(session: requests.Session, url: str, **kwargs: Any) -> requests.Response:
    """Thin wrapper around session.get with retry policy from utils.retryable_request."""
    return session.get(url, **kwargs)


def _iter_dicts(o) -> Iterator[dict]:
    """Yield all dicts inside arbitrary JSON (list/dict scalars)."""
    if isinstance(o, dict):
        yield o
        for v in o.values():
            yield from _iter_dicts(v)
    elif isinstance(o, list):
        for v in o:
            yield from _iter_dicts(v)


def _first_nonempty(*vals) -> Optional[str]:
    for v in vals:
        if v:
            s = str(v).strip()
            if s:
                return s
    return None


def _same_id(value, entity_id: int) -> bool:
    try:
        return int(value) == entity_id
    except (TypeError, ValueError):
        return False


def _find_product(data, entity_id: int) -> Optional[dict]:
    for d in _iter_dicts(data):
        if (_same_id(d.get("id"), entity_id) or _same_id(d.get("webshopId"), entity_id)) and "title" in d:
            return d
    return None


def _parse_price(item: dict) -> float:
    price = item.get("price")
    candidates = []
    if isinstance(price, dict):
        candidates.extend([price.get("now"), price.get("was")])
    else:
        candidates.append(price)
    candidates.extend([item.get("currentPrice"), item.get("priceBeforeBonus")])
    for c in candidates:
        if c is None:
            continue
        try:
            return float(c)
        except (TypeError, ValueError):
            continue
    return 0.0


def _parse_date(value) -> Optional[_dt.date]:
    if not value:
        return None
    try:
        return _dt.date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.debug("Ignoring malformed date %r", value)
        return None


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _parse_theme(item: dict) -> str:
    control = _as_dict(item.get("control"))
    discount = _as_dict(item.get("discount"))
    return _first_nonempty(control.get("theme"), discount.get("theme")) or ""


def _parse_badge(item: dict) -> str:
    shield = _as_dict(item.get("shield"))
    labels = item.get("discountLabels")
    if not isinstance(labels, list):
        labels = []
    label = labels[0] if labels and isinstance(labels[0], dict) else {}
    return _first_nonempty(shield.get("text"), label.get("defaultDescription"), item.get("bonusMechanism")) or ""


def _parse_image_url(item: dict) -> str:
    images = item.get("images")
    if not isinstance(images, list):
        images = []
    for img in images:
        if isinstance(img, dict) and img.get("url"):
            return str(img["url"])
    return ""


def parse_snapshot(item: dict, entity_id: int) -> Snapshot:
    """Build a Snapshot from one catalog product object."""
    discount = _as_dict(item.get("discount"))
    orderable = item.get("orderable")
    if orderable is None:
        orderable = item.get("availableOnline", False)
    return Snapshot(
        id=entity_id,
        title=str(item.get("title") or f"Product {entity_id}"),
        brand=str(item.get("brand") or ""),
        summary=str(item.get("summary") or item.get("descriptionHighlights") or ""),
        price_now=_parse_price(item),
        orderable=bool(orderable),
        promotion_theme=_parse_theme(item),
        promotion_badge_text=_parse_badge(item),
        promotion_start_date=_parse_date(discount.get("startDate")),
        promotion_end_date=_parse_date(discount.get("endDate")),
        thumbnail_url=_parse_image_url(item),
    )


class CatalogClient:
    """Resolves product IDs to their current Snapshot."""

    def __init__(
        self,
        product_url: str = CATALOG_PRODUCT_URL,
        *,
        timeout: float = CATALOG_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.product_url = product_url
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session if session is not None else get_http_session()

    def fetch(self, entity_id: int) -> Snapshot:
        url = self.product_url.format(id=entity_id)
        logger.debug("Fetching product %s from %s", entity_id, url)
        try:
            resp = _get(self.session, url, timeout=self.timeout)
        except HTTPError as e:
            if e.status_code == 404:
                raise EntityNotFound(entity_id) from e
            raise CatalogUnavailable(f"catalog error for product {entity_id}: {e}") from e
        except requests.RequestException as e:
            raise CatalogUnavailable(f"catalog unreachable for product {entity_id}: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise CatalogUnavailable(f"catalog returned invalid JSON for product {entity_id}") from e

        item = _find_product(data, entity_id)
        if item is None:
            raise EntityNotFound(entity_id)
        try:
            return parse_snapshot(item, entity_id)
        except (AttributeError, TypeError, ValueError) as e:
            raise CatalogUnavailable(f"catalog returned a malformed product {entity_id}: {e}") from e

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "CatalogClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["Snapshot", "CatalogClient", "parse_snapshot"]
