"""WordPress product-category directory client.

Reads the full `product_cat` taxonomy through the WordPress REST API and applies
sparse patches to single categories. Yoast SEO values are read from the rendered
`yoast_head_json` block first, then from the raw `_yoast_wpseo_*` term meta; writes
send the `_yoast_wpseo_*` keys at the top level of the term body and again under `meta`.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .errors import CategoryUpdateError, DirectoryConnectionError
from .models import WordPressCredentials
from .utils import mask_secret

logger = logging.getLogger("catagent.wordpress")

CATEGORY_ENDPOINT = "/product_cat"
CURRENT_USER_ENDPOINT = "/users/me"

YOAST_TITLE_KEY = "_yoast_wpseo_title"
YOAST_METADESC_KEY = "_yoast_wpseo_metadesc"
YOAST_FOCUSKW_KEY = "_yoast_wpseo_focuskw"

TERM_FIELDS = {
    "name": "name",
    "slug": "slug",
    "description": "description",
}
META_FIELDS = {
    "meta_title": YOAST_TITLE_KEY,
    "meta_description": YOAST_METADESC_KEY,
    "focus_keyphrase": YOAST_FOCUSKW_KEY,
}
PATCH_KEYS = tuple(TERM_FIELDS) + tuple(META_FIELDS)


@dataclass
class SeoMeta:
    """Yoast SEO values attached to a category; None when not defined."""
    title: Optional[str] = None
    meta_description: Optional[str] = None
    focus_keyphrase: Optional[str] = None


@dataclass
class Category:
    """Transient copy of a WordPress product category."""
    id: int
    name: str
    slug: str = ""
    description: str = ""
    seo: SeoMeta = field(default_factory=SeoMeta)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Category":
        """Purpose: Build a Category from a WordPress REST term payload.
        Inputs/Outputs: Input is the decoded JSON dict; output is a Category.
        Side Effects / State: None.
        Dependencies: Uses _first_text for Yoast fallbacks and html.unescape for names.
        Failure Modes: Raises KeyError/ValueError/TypeError when `id` is missing or not numeric.
        If Removed: Catalog responses cannot be turned into resolvable categories.
        Testing Notes: Check yoast_head_json precedence over term meta and
            that "&amp;" in names is unescaped.
        """
        # Term meta is an empty list when no meta is registered for the taxonomy.
        meta = data.get("meta")
        if not isinstance(meta, dict):
            meta = {}
        yoast = data.get("yoast_head_json")
        if not isinstance(yoast, dict):
            yoast = {}

        seo = SeoMeta(
            title=_first_text(yoast.get("title"), meta.get(YOAST_TITLE_KEY), data.get(YOAST_TITLE_KEY)),
            meta_description=_first_text(
                yoast.get("description"), meta.get(YOAST_METADESC_KEY), data.get(YOAST_METADESC_KEY)
            ),
            focus_keyphrase=_first_text(meta.get(YOAST_FOCUSKW_KEY), data.get(YOAST_FOCUSKW_KEY)),
        )
        return cls(
            id=int(data["id"]),
            name=html.unescape(str(data.get("name") or "")).strip(),
            slug=str(data.get("slug") or "").strip(),
            description=str(data.get("description") or ""),
            seo=seo,
        )


class WordPressCategoryClient:
    """Stateless REST client; every call opens its own connection with the given credentials."""

    def __init__(
        self,
        timeout: float = 15.0,
        per_page: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._per_page = per_page
        self._transport = transport

    def _open(self, credentials: WordPressCredentials) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=credentials.api_base,
            auth=(credentials.username, credentials.app_password),
            timeout=self._timeout,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    async def list_all(self, credentials: WordPressCredentials) -> List[Category]:
        """Purpose: Fetch every product category known to the backend.
        Inputs/Outputs: Input is WordPressCredentials; output is the list of Category
            in backend order, across all pages.
        Side Effects / State: Issues one GET per page; nothing is cached.
        Dependencies: Uses httpx.AsyncClient and Category.from_api.
        Failure Modes: Raises DirectoryConnectionError on transport errors, rejected
            authentication, non-success status, or a body that is not a JSON list.
        If Removed: Listing and every name resolution stop working.
        Testing Notes: Serve two pages via X-WP-TotalPages and assert both are merged.
        """
        # Walk pages until the advertised page count (or a short page) is reached.
        categories: List[Category] = []
        page = 1
        async with self._open(credentials) as client:
            while True:
                try:
                    response = await client.get(
                        CATEGORY_ENDPOINT,
                        params={"per_page": self._per_page, "page": page, "orderby": "name", "order": "asc"},
                    )
                except httpx.HTTPError as exc:
                    logger.warning("wordpress list failed url=%s error=%s", credentials.wp_url, exc)
                    raise DirectoryConnectionError(f"cannot reach {credentials.wp_url}: {exc}") from exc

                _raise_for_directory_status(response, credentials)
                try:
                    batch = response.json()
                except ValueError as exc:
                    raise DirectoryConnectionError("category listing is not valid JSON") from exc
                if not isinstance(batch, list):
                    raise DirectoryConnectionError("category listing is not a JSON list")

                for item in batch:
                    if not isinstance(item, dict):
                        continue
                    try:
                        categories.append(Category.from_api(item))
                    except (KeyError, TypeError, ValueError):
                        logger.warning("wordpress skipped malformed category payload=%s", item)

                total_pages = _parse_total_pages(response)
                if page >= total_pages or len(batch) < self._per_page:
                    break
                page += 1

        logger.info("wordpress listed categories count=%d pages=%d", len(categories), page)
        return categories

    async def update(
        self,
        credentials: WordPressCredentials,
        category_id: int,
        patch: Dict[str, str],
    ) -> Optional[Category]:
        """Purpose: Apply a sparse patch to one category.
        Inputs/Outputs: Inputs are credentials, the category id and a patch keyed by
            PATCH_KEYS; output is the updated Category, or None when the backend
            acknowledged the write without a readable term object.
        Side Effects / State: One POST to the term endpoint; only patch keys are sent.
        Dependencies: Uses to_wordpress_payload and httpx.AsyncClient.
        Failure Modes: ValueError for an empty or unknown-key patch; CategoryUpdateError
            for transport errors or any non-2xx status (invalid id, permissions).
        If Removed: Update and copy actions cannot write to WordPress.
        Testing Notes: Assert the request body only contains the patched keys.
        """
        # Translate domain keys to term fields and Yoast meta, then POST.
        payload = to_wordpress_payload(patch)
        logger.info(
            "wordpress update category_id=%s fields=%s user=%s",
            category_id,
            sorted(patch),
            mask_secret(credentials.username),
        )
        async with self._open(credentials) as client:
            try:
                response = await client.post(f"{CATEGORY_ENDPOINT}/{category_id}", json=payload)
            except httpx.HTTPError as exc:
                logger.warning("wordpress update failed category_id=%s error=%s", category_id, exc)
                raise CategoryUpdateError(category_id, f"cannot reach {credentials.wp_url}: {exc}") from exc

        if not response.is_success:
            message = _error_message(response)
            logger.warning(
                "wordpress update rejected category_id=%s status=%s message=%s",
                category_id,
                response.status_code,
                message,
            )
            raise CategoryUpdateError(category_id, message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        try:
            return Category.from_api(data)
        except (KeyError, TypeError, ValueError):
            return None

    async def validate_connection(self, credentials: WordPressCredentials) -> bool:
        """Return True when the site answers and accepts the application password."""
        async with self._open(credentials) as client:
            try:
                response = await client.get(CURRENT_USER_ENDPOINT)
            except httpx.HTTPError as exc:
                logger.warning("wordpress validation failed url=%s error=%s", credentials.wp_url, exc)
                return False
        if response.status_code != 200:
            logger.warning(
                "wordpress validation rejected url=%s status=%s", credentials.wp_url, response.status_code
            )
            return False
        return True


def to_wordpress_payload(patch: Dict[str, str]) -> Dict[str, Any]:
    """Purpose: Map a domain patch to the WordPress term update body.
    Inputs/Outputs: Input is a dict keyed by PATCH_KEYS; output is the JSON body with
        term fields and Yoast keys at top level; Yoast values are repeated under `meta`
        for sites that expose them as registered term meta.
    Side Effects / State: None.
    Dependencies: TERM_FIELDS and META_FIELDS.
    Failure Modes: ValueError for unknown keys or an empty patch.
    If Removed: Updates would need to know WordPress field names.
    Testing Notes: {"meta_title": "x"} -> {"_yoast_wpseo_title": "x",
        "meta": {"_yoast_wpseo_title": "x"}}.
    """
    unknown = set(patch) - set(PATCH_KEYS)
    if unknown:
        raise ValueError(f"unknown patch fields: {sorted(unknown)}")
    if not patch:
        raise ValueError("patch is empty")

    payload: Dict[str, Any] = {}
    meta: Dict[str, str] = {}
    for key, value in patch.items():
        if key in TERM_FIELDS:
            payload[TERM_FIELDS[key]] = value
        else:
            payload[META_FIELDS[key]] = value
            meta[META_FIELDS[key]] = value
    if meta:
        payload["meta"] = meta
    return payload


def _first_text(*values: Any) -> Optional[str]:
    # First non-blank string wins; blanks count as "not defined".
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _parse_total_pages(response: httpx.Response) -> int:
    try:
        return max(int(response.headers.get("X-WP-TotalPages", "1")), 1)
    except ValueError:
        return 1


def _raise_for_directory_status(response: httpx.Response, credentials: WordPressCredentials) -> None:
    if response.status_code in (401, 403):
        logger.warning(
            "wordpress auth rejected url=%s user=%s status=%s",
            credentials.wp_url,
            mask_secret(credentials.username),
            response.status_code,
        )
        raise DirectoryConnectionError("authentication rejected", status_code=response.status_code)
    if response.status_code >= 400:
        raise DirectoryConnectionError(_error_message(response), status_code=response.status_code)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"HTTP {response.status_code}: {response.text[:200]}"
