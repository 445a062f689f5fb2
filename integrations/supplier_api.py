"""
Supplier product API client.

Fetches paginated product feeds with a bearer token. Supplier APIs disagree
on response shape, so item arrays are located by trying known shapes in
priority order before falling back to a generic scan.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urljoin
import requests
import structlog

from config.settings import settings
from exceptions import SourceFetchError
from utils.record_paths import flatten_keys

logger = structlog.get_logger(__name__)

USER_AGENT = "ProductImportEngine/1.0"

# Known item-array locations, tried in order after a root-level array
ITEM_ARRAY_KEYS = ("data", "products")

NEXT_PAGE_KEYS = ("next_page_url", "nextPageUrl", "next")

ERROR_BODY_LIMIT = 500


@dataclass
class FetchResult:
    """Items collected across every page that could be read."""
    items: list[dict] = field(default_factory=list)
    pages_fetched: int = 0
    truncated: bool = False
    error: Optional[str] = None


def normalize_token(token: Optional[str]) -> Optional[str]:
    """Strip a leading 'Bearer ' so stored tokens work either way."""
    if not token:
        return None
    token = token.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return token or None


def build_headers(token: Optional[str]) -> dict:
    headers = {
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    normalized = normalize_token(token)
    if normalized:
        headers["Authorization"] = f"Bearer {normalized}"
    return headers


def extract_items(payload: Any) -> list[dict]:
    """
    Locate the item array in a page payload.

    Shapes, in priority order:
        1. root array
        2. {"data": [...]}
        3. {"products": [...]}
        4. first property holding a non-empty array of objects

    Returns:
        List of item dicts (empty when nothing matches)
    """
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]

    if not isinstance(payload, dict):
        return []

    for key in ITEM_ARRAY_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]

    for value in payload.values():
        if isinstance(value, list) and value and all(isinstance(item, dict) for item in value):
            return value

    return []


def next_page_url(payload: Any, current_url: str) -> Optional[str]:
    """Read the next page link, resolving relative URLs against the current page."""
    if not isinstance(payload, dict):
        return None

    candidates = [payload.get(key) for key in NEXT_PAGE_KEYS]
    links = payload.get("links")
    if isinstance(links, dict):
        candidates.append(links.get("next"))

    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return urljoin(current_url, candidate.strip())

    return None


def _get_json(
    session: requests.Session,
    url: str,
    headers: dict,
    timeout: int,
    params: Optional[dict] = None
) -> Any:
    """
    GET one page and decode it.

    Raises:
        SourceFetchError: On timeout, connection failure, non-2xx or non-JSON body
    """
    try:
        response = session.get(url, headers=headers, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()

    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        body = e.response.text[:ERROR_BODY_LIMIT] if e.response is not None else ""
        raise SourceFetchError(
            message=f"Supplier API returned HTTP {status}",
            details={"url": url, "status_code": status, "body": body}
        )
    except requests.exceptions.RequestException as e:
        raise SourceFetchError(
            message=f"Supplier API request failed: {str(e)}",
            details={"url": url, "error_type": type(e).__name__}
        )
    except ValueError as e:
        raise SourceFetchError(
            message="Supplier API returned a non-JSON body",
            details={"url": url, "error": str(e)}
        )


def fetch_all_items(
    api_url: str,
    access_token: Optional[str] = None,
    max_pages: Optional[int] = None,
    timeout: Optional[int] = None,
    session: Optional[requests.Session] = None
) -> FetchResult:
    """
    Fetch every page of a supplier feed.

    A page that fails after the first one truncates the feed instead of
    failing it.

    Args:
        api_url: First page URL
        access_token: Bearer token
        max_pages: Safety cap on pages (defaults to settings.import_max_pages)
        timeout: Per-request timeout in seconds
        session: Optional requests session (injected in tests)

    Returns:
        FetchResult with every collected item

    Raises:
        SourceFetchError: If the first page fails and nothing was collected
    """
    max_pages = max_pages or settings.import_max_pages
    timeout = timeout or settings.source_page_timeout_seconds
    session = session or requests.Session()
    headers = build_headers(access_token)

    result = FetchResult()
    url: Optional[str] = api_url
    visited: set[str] = set()

    logger.info("source_fetch_started", url=api_url, max_pages=max_pages)

    while url and result.pages_fetched < max_pages:
        if url in visited:
            logger.warning("source_pagination_loop", url=url)
            break
        visited.add(url)

        try:
            payload = _get_json(session, url, headers, timeout)
        except SourceFetchError as e:
            if result.pages_fetched == 0 and not result.items:
                logger.error("source_fetch_failed", url=url, error=e.message)
                raise
            logger.warning(
                "source_page_failed",
                url=url,
                page=result.pages_fetched + 1,
                error=e.message
            )
            result.truncated = True
            result.error = e.message
            break

        result.pages_fetched += 1
        result.items.extend(extract_items(payload))
        url = next_page_url(payload, url)

    if url and result.pages_fetched >= max_pages:
        logger.warning("source_page_cap_reached", max_pages=max_pages)
        result.truncated = True

    logger.info(
        "source_fetch_complete",
        pages=result.pages_fetched,
        items=len(result.items),
        truncated=result.truncated
    )

    return result


# ===================
# CONNECTION TOOLING
# ===================

def validate_connection(
    api_url: str,
    access_token: Optional[str] = None,
    timeout: Optional[int] = None,
    session: Optional[requests.Session] = None
) -> dict:
    """
    Check that a supplier endpoint answers with a 2xx.

    Returns:
        dict with success, status_code, message and (on failure) error
    """
    timeout = timeout or settings.source_validation_timeout_seconds
    session = session or requests.Session()

    try:
        response = session.get(api_url, headers=build_headers(access_token), timeout=timeout)
    except requests.exceptions.Timeout:
        return {
            "success": False,
            "status_code": None,
            "message": "Connection timed out",
            "error": f"No response within {timeout}s",
        }
    except requests.exceptions.RequestException as e:
        return {
            "success": False,
            "status_code": None,
            "message": "Connection failed",
            "error": str(e),
        }

    if response.ok:
        return {
            "success": True,
            "status_code": response.status_code,
            "message": "Connection successful",
            "error": None,
        }

    logger.info("source_validation_rejected", url=api_url, status=response.status_code)
    return {
        "success": False,
        "status_code": response.status_code,
        "message": f"Supplier API returned HTTP {response.status_code}",
        "error": response.text[:ERROR_BODY_LIMIT],
    }


def fetch_sample(
    api_url: str,
    access_token: Optional[str] = None,
    page: int = 1,
    timeout: Optional[int] = None,
    session: Optional[requests.Session] = None
) -> tuple[list[dict], dict]:
    """
    Fetch a single page for preview.

    Returns:
        (items, pagination) where pagination mirrors the supplier's page info

    Raises:
        SourceFetchError: If the page cannot be read
    """
    timeout = timeout or settings.source_page_timeout_seconds
    session = session or requests.Session()

    params = {"page": page} if page > 1 else None
    payload = _get_json(session, api_url, build_headers(access_token), timeout, params=params)

    meta = payload if isinstance(payload, dict) else {}
    if isinstance(meta.get("meta"), dict):
        meta = {**meta, **meta["meta"]}

    pagination = {
        "current_page": meta.get("current_page", page),
        "per_page": meta.get("per_page"),
        "total": meta.get("total"),
        "next_page_url": next_page_url(payload, api_url),
        "prev_page_url": meta.get("prev_page_url"),
    }

    return extract_items(payload), pagination


def sample_fields(items: list[dict]) -> list[str]:
    """Dotted field paths of the first item, sorted."""
    if not items:
        return []
    return sorted(set(flatten_keys(items[0])))
