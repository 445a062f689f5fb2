"""
Unit tests for the supplier API client.

Run: pytest tests/unit/test_supplier_api.py -v
"""

import pytest
import requests
from unittest.mock import MagicMock

from exceptions import SourceFetchError
from integrations.supplier_api import (
    build_headers,
    extract_items,
    fetch_all_items,
    fetch_sample,
    next_page_url,
    sample_fields,
    validate_connection,
)

API_URL = "https://api.acme.test/products"


def json_response(payload, status_code: int = 200, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    return response


def session_returning(*responses) -> MagicMock:
    session = MagicMock()
    session.get.side_effect = list(responses)
    return session


class TestExtractItems:
    """Tests for extract_items()"""

    def test_root_array(self):
        assert extract_items([{"id": 1}, "junk"]) == [{"id": 1}]

    def test_data_before_products(self):
        payload = {"products": [{"id": 2}], "data": [{"id": 1}]}

        assert extract_items(payload) == [{"id": 1}]

    def test_products_key(self):
        assert extract_items({"products": [{"id": 2}]}) == [{"id": 2}]

    def test_first_array_of_objects(self):
        """Should fall back to the first non-empty array of objects."""
        payload = {"meta": {"total": 1}, "codes": ["a"], "items": [{"id": 3}]}

        assert extract_items(payload) == [{"id": 3}]

    def test_nothing_found(self):
        assert extract_items({"message": "ok"}) == []
        assert extract_items("text") == []


class TestNextPageUrl:
    """Tests for next_page_url()"""

    def test_relative_url_is_resolved(self):
        assert next_page_url({"next_page_url": "/products?page=2"}, API_URL) == "https://api.acme.test/products?page=2"

    def test_links_next(self):
        payload = {"links": {"next": "https://api.acme.test/products?page=3"}}

        assert next_page_url(payload, API_URL) == "https://api.acme.test/products?page=3"

    def test_no_next(self):
        assert next_page_url({"next_page_url": None}, API_URL) is None
        assert next_page_url([], API_URL) is None


class TestBuildHeaders:
    """Tests for build_headers()"""

    def test_bearer_prefix_is_not_doubled(self):
        assert build_headers("Bearer abc")["Authorization"] == "Bearer abc"
        assert build_headers("abc")["Authorization"] == "Bearer abc"

    def test_no_token(self):
        assert "Authorization" not in build_headers(None)


class TestFetchAllItems:
    """Tests for fetch_all_items()"""

    def test_follows_pagination(self):
        """Should collect items across every page."""
        # Arrange
        session = session_returning(
            json_response({"data": [{"id": 1}], "next_page_url": "/products?page=2"}),
            json_response({"data": [{"id": 2}], "next_page_url": None}),
        )

        # Act
        result = fetch_all_items(API_URL, "tok", session=session)

        # Assert
        assert result.items == [{"id": 1}, {"id": 2}]
        assert result.pages_fetched == 2
        assert not result.truncated
        assert session.get.call_args_list[1].args[0] == "https://api.acme.test/products?page=2"

    def test_later_page_failure_truncates(self):
        """Should keep earlier pages when a later page fails."""
        # Arrange
        session = session_returning(
            json_response({"data": [{"id": 1}], "next": "/products?page=2"}),
            requests.exceptions.Timeout("read timed out"),
        )

        # Act
        result = fetch_all_items(API_URL, session=session)

        # Assert
        assert result.items == [{"id": 1}]
        assert result.truncated
        assert "read timed out" in result.error

    def test_first_page_failure_raises(self):
        session = session_returning(requests.exceptions.ConnectionError("refused"))

        with pytest.raises(SourceFetchError):
            fetch_all_items(API_URL, session=session)

    def test_http_error_details(self):
        """Should report the status code and a truncated body."""
        session = session_returning(json_response({}, status_code=500, text="x" * 800))

        with pytest.raises(SourceFetchError) as exc_info:
            fetch_all_items(API_URL, session=session)

        assert exc_info.value.details["status_code"] == 500
        assert len(exc_info.value.details["body"]) == 500

    def test_non_json_body(self):
        response = json_response(None)
        response.json.side_effect = ValueError("Expecting value")

        with pytest.raises(SourceFetchError):
            fetch_all_items(API_URL, session=session_returning(response))

    def test_pagination_loop_stops(self):
        session = MagicMock()
        session.get.return_value = json_response({"data": [{"id": 1}], "next_page_url": API_URL})

        result = fetch_all_items(API_URL, session=session)

        assert result.pages_fetched == 1
        assert session.get.call_count == 1

    def test_page_cap(self):
        session = session_returning(
            json_response({"data": [{"id": 1}], "next": "?page=2"}),
            json_response({"data": [{"id": 2}], "next": "?page=3"}),
        )

        result = fetch_all_items(API_URL, max_pages=2, session=session)

        assert result.pages_fetched == 2
        assert result.truncated


class TestValidateConnection:
    """Tests for validate_connection()"""

    def test_success(self):
        result = validate_connection(API_URL, "tok", session=session_returning(json_response([])))

        assert result["success"] is True
        assert result["status_code"] == 200

    def test_rejected(self):
        """Should report non-2xx responses without raising."""
        session = session_returning(json_response({}, status_code=401, text="Unauthorized"))

        result = validate_connection(API_URL, "bad", session=session)

        assert result["success"] is False
        assert result["status_code"] == 401
        assert result["error"] == "Unauthorized"

    def test_timeout(self):
        session = session_returning(requests.exceptions.Timeout())

        result = validate_connection(API_URL, timeout=10, session=session)

        assert result["success"] is False
        assert result["message"] == "Connection timed out"


class TestFetchSample:
    """Tests for fetch_sample() / sample_fields()"""

    def test_sample_with_meta(self):
        # Arrange
        payload = {
            "data": [{"id": 1}],
            "meta": {"current_page": 2, "per_page": 20, "total": 40},
            "next_page_url": "/products?page=3",
        }
        session = session_returning(json_response(payload))

        # Act
        items, pagination = fetch_sample(API_URL, page=2, session=session)

        # Assert
        assert items == [{"id": 1}]
        assert pagination["current_page"] == 2
        assert pagination["total"] == 40
        assert pagination["next_page_url"] == "https://api.acme.test/products?page=3"
        assert session.get.call_args.kwargs["params"] == {"page": 2}

    def test_sample_fields(self):
        items = [{"id": 1, "brand": {"name": "Acme"}, "variants": [{"sku": "S1"}], "tags": ["a"]}]

        assert sample_fields(items) == ["brand.name", "id", "tags", "variants.0.sku"]

    def test_sample_fields_empty(self):
        assert sample_fields([]) == []
