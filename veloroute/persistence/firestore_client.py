"""Firestore async client singleton."""

from __future__ import annotations

import logging

from google.cloud.firestore import AsyncClient

logger = logging.getLogger(__name__)

_client: AsyncClient | None = None


def get_firestore_client() -> AsyncClient:
    """Return a lazy-initialized Firestore AsyncClient.

    Uses Application Default Credentials (ADC).  Tests patch this function
    with an in-memory fake.
    """
    global _client
    if _client is None:
        _client = AsyncClient()
        logger.info("Using Google Cloud Firestore")
    return _client
