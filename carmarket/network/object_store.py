"""
Object store adapters for listing images.

Archival only needs bulk deletion. ``CloudinaryObjectStore`` talks to the
Cloudinary Admin API over ``requests`` with bounded timeouts and retries;
``NullObjectStore`` is used when no credentials are configured.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

import requests
import structlog

from carmarket.config import (
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    CLOUDINARY_CLOUD_NAME,
    OBJECT_STORE_TIMEOUT_SECONDS,
)
from carmarket.errors import TransientExternalError

logger = structlog.get_logger(__name__)

BASE_URL = "https://api.cloudinary.com/v1_1/"
BATCH_SIZE = 100
MAX_RETRIES = 2
RETRY_DELAY = 0.5

_VERSION_SEGMENT = re.compile(r"^v\d+/")
_EXTENSION = re.compile(r"\.[^/.]+$")


@dataclass
class DeleteResult:
    """Outcome of a bulk delete, in terms of the URLs passed in."""

    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class ObjectStore(Protocol):
    def delete_many(self, urls: Sequence[str]) -> DeleteResult:
        """
        Delete the objects behind ``urls``.

        Partial failures are reported in the result; only total
        unavailability raises TransientExternalError.
        """
        ...


class NullObjectStore:
    """Object store used when no provider is configured. Deletes nothing."""

    def delete_many(self, urls: Sequence[str]) -> DeleteResult:
        if urls:
            logger.warning("object_store_not_configured", skipped=len(urls))
        return DeleteResult()


def extract_public_id(url: str) -> Optional[str]:
    """
    Extract the Cloudinary public id from a delivery URL.

    Example:
        >>> extract_public_id(
        ...     "https://res.cloudinary.com/demo/image/upload/v1712/cars/abc123.jpg"
        ... )
        'cars/abc123'
    """
    if not url or not isinstance(url, str):
        return None

    parts = url.split("/")
    if "upload" not in parts:
        return None

    path = "/".join(parts[parts.index("upload") + 1 :])
    path = _VERSION_SEGMENT.sub("", path)
    public_id = _EXTENSION.sub("", path)
    return public_id or None


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Decide whether a failed admin API call is worth repeating.

    Args:
        res: Response object if one was received
        err: Exception raised by the request, if any

    Returns:
        bool: True for rate limiting, server errors and network failures
    """
    if res is not None and (res.status_code == 429 or 500 <= res.status_code < 600):
        return True
    return isinstance(err, (requests.Timeout, requests.ConnectionError))


class CloudinaryObjectStore:
    """
    Deletes images through the Cloudinary Admin API.

    Args:
        cloud_name: Cloudinary cloud name
        api_key: Admin API key
        api_secret: Admin API secret
        timeout: Per-request timeout in seconds
        session: Optional requests session (for connection reuse or tests)
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = OBJECT_STORE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = f"{BASE_URL}{cloud_name}/resources/image/upload"
        self.auth = (api_key, api_secret)
        self.timeout = timeout
        self.session = session or requests.Session()

    def _delete_batch(self, public_ids: list[str]) -> dict[str, str]:
        retries = 0
        while True:
            res: Optional[requests.Response] = None
            try:
                res = self.session.delete(
                    self.endpoint,
                    params=[("public_ids[]", public_id) for public_id in public_ids],
                    auth=self.auth,
                    timeout=self.timeout,
                )
                res.raise_for_status()
                return dict(res.json().get("deleted", {}))
            except requests.RequestException as err:
                retries += 1
                logger.warning(
                    "object_store_delete_error",
                    batch_size=len(public_ids),
                    attempt=retries,
                    error=str(err),
                )
                if retries > MAX_RETRIES or not should_retry(res, err):
                    raise
                time.sleep(RETRY_DELAY * retries)

    def delete_many(self, urls: Sequence[str]) -> DeleteResult:
        """
        Delete images in batches of 100 public ids.

        Args:
            urls: Image delivery URLs

        Returns:
            DeleteResult: URLs deleted (or already gone) and URLs that could not be deleted

        Raises:
            TransientExternalError: When every batch failed to reach Cloudinary
        """
        result = DeleteResult()
        by_public_id: dict[str, str] = {}
        for url in urls:
            public_id = extract_public_id(url)
            if public_id is None:
                result.failed.append(url)
            else:
                by_public_id[public_id] = url

        public_ids = list(by_public_id)
        batches = [public_ids[i : i + BATCH_SIZE] for i in range(0, len(public_ids), BATCH_SIZE)]
        unreachable = 0

        for batch in batches:
            try:
                statuses = self._delete_batch(batch)
            except requests.RequestException:
                unreachable += 1
                result.failed.extend(by_public_id[public_id] for public_id in batch)
                continue

            for public_id in batch:
                if statuses.get(public_id) in ("deleted", "not_found"):
                    result.deleted.append(by_public_id[public_id])
                else:
                    result.failed.append(by_public_id[public_id])

        if batches and unreachable == len(batches):
            raise TransientExternalError(f"Cloudinary unavailable; {len(public_ids)} image(s) kept")

        logger.info(
            "object_store_delete_completed",
            deleted=len(result.deleted),
            failed=len(result.failed),
        )
        return result


def build_object_store() -> ObjectStore:
    """Return the configured object store (Cloudinary when credentials are set)."""
    if CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET:
        return CloudinaryObjectStore(
            CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET
        )
    return NullObjectStore()
