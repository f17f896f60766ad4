"""
Unit tests for the Cloudinary object store adapter.
"""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
import requests

from carmarket.errors import TransientExternalError
from carmarket.network.object_store import (
    CloudinaryObjectStore,
    NullObjectStore,
    extract_public_id,
    should_retry,
)

URL_A = "https://res.cloudinary.com/demo/image/upload/v1712/cars/abc123.jpg"
URL_B = "https://res.cloudinary.com/demo/image/upload/cars/def456.png"


def make_store(session: Mock) -> CloudinaryObjectStore:
    return CloudinaryObjectStore("demo", "key", "secret", timeout=3, session=session)


def ok_response(deleted: dict[str, str]) -> Mock:
    response = Mock(status_code=200)
    response.json.return_value = {"deleted": deleted}
    return response


@pytest.mark.unit
@pytest.mark.parametrize(
    "url, expected",
    [
        (URL_A, "cars/abc123"),
        (URL_B, "cars/def456"),
        ("https://cdn.example.com/upload/car-1.jpg", "car-1"),
        ("https://cdn.example.com/images/car-1.jpg", None),
        ("", None),
    ],
)
def test_extract_public_id(url: str, expected: str | None) -> None:
    assert extract_public_id(url) == expected


@pytest.mark.unit
def test_delete_many_reports_per_url_outcome() -> None:
    """Test that deleted and not_found count as gone and anything else as failed."""
    session = Mock()
    session.delete.return_value = ok_response(
        {"cars/abc123": "deleted", "cars/def456": "not_found"}
    )
    url_c = "https://res.cloudinary.com/demo/image/upload/cars/ghi789.jpg"
    session.delete.return_value.json.return_value["deleted"]["cars/ghi789"] = "error"

    result = make_store(session).delete_many([URL_A, URL_B, url_c, "not-a-url"])

    assert result.deleted == [URL_A, URL_B]
    assert sorted(result.failed) == sorted([url_c, "not-a-url"])
    _, kwargs = session.delete.call_args
    assert kwargs["timeout"] == 3
    assert kwargs["auth"] == ("key", "secret")
    assert ("public_ids[]", "cars/abc123") in kwargs["params"]


@pytest.mark.unit
def test_delete_many_batches_by_hundred() -> None:
    """Test that 250 images are deleted in three admin API calls."""
    urls = [f"https://res.cloudinary.com/demo/image/upload/cars/{i}.jpg" for i in range(250)]
    session = Mock()
    session.delete.side_effect = lambda endpoint, params, auth, timeout: ok_response(
        {public_id: "deleted" for _, public_id in params}
    )

    result = make_store(session).delete_many(urls)

    assert session.delete.call_count == 3
    assert len(result.deleted) == 250
    assert result.failed == []


@pytest.mark.unit
@patch("carmarket.network.object_store.time.sleep")
def test_timeouts_are_retried_then_reported_unavailable(mock_sleep: Mock) -> None:
    """Test that repeated timeouts retry with backoff and then raise TransientExternalError."""
    session = Mock()
    session.delete.side_effect = requests.Timeout("timed out")

    with pytest.raises(TransientExternalError):
        make_store(session).delete_many([URL_A])

    assert session.delete.call_count == 3
    assert mock_sleep.call_count == 2


@pytest.mark.unit
@patch("carmarket.network.object_store.time.sleep")
def test_retry_recovers_after_server_error(mock_sleep: Mock) -> None:
    """Test that a 503 followed by success deletes the image."""
    failing = Mock(status_code=503)
    failing.raise_for_status.side_effect = requests.HTTPError("503")
    session = Mock()
    session.delete.side_effect = [failing, ok_response({"cars/abc123": "deleted"})]

    result = make_store(session).delete_many([URL_A])

    assert result.deleted == [URL_A]
    mock_sleep.assert_called_once()


@pytest.mark.unit
def test_client_error_is_not_retried() -> None:
    """Test that a 401 fails immediately without retrying."""
    rejected = Mock(status_code=401)
    rejected.raise_for_status.side_effect = requests.HTTPError("401")
    session = Mock()
    session.delete.return_value = rejected

    with pytest.raises(TransientExternalError):
        make_store(session).delete_many([URL_A])

    assert session.delete.call_count == 1


@pytest.mark.unit
def test_should_retry() -> None:
    assert should_retry(Mock(status_code=429), None)
    assert should_retry(Mock(status_code=502), None)
    assert not should_retry(Mock(status_code=404), None)
    assert should_retry(None, requests.ConnectionError())
    assert not should_retry(None, ValueError())


@pytest.mark.unit
def test_null_object_store_deletes_nothing() -> None:
    result = NullObjectStore().delete_many([URL_A])

    assert result.deleted == []
    assert result.failed == []
