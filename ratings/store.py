"""
Purpose: Persistence collaborators for product ratings.
What it does:
- RatingStore: the async contract the rating flow talks to
- InMemoryRatingStore: dict backed store (tests, offline mode)
- FirestoreRatingStore: Firestore REST adapter over `requests`
   - one document per (product, customer): productRatings/{productId}_{customerId}
   - PATCH upserts, :runQuery reads
   - blocking HTTP runs in a worker thread so the event loop keeps ticking

Rule: Stores only persist and load. No eligibility rules here.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import requests

import settings

from .errors import RatingStoreError
from .models import ProductRating

logger = logging.getLogger(__name__)

RATINGS_COLLECTION = "productRatings"

# Firestore 'IN' filters accept at most 10 values
IN_QUERY_LIMIT = 10


class RatingStore(ABC):
    """
    Async persistence contract used by RatingSubmissionFlow.
    """

    @abstractmethod
    async def save_rating(self, rating: ProductRating) -> None:
        ...

    @abstractmethod
    async def ratings_for_product(self, product_id: str) -> List[ProductRating]:
        ...

    async def ratings_for_products(self, product_ids: Iterable[str]) -> List[ProductRating]:
        ratings: List[ProductRating] = []
        for product_id in product_ids:
            ratings.extend(await self.ratings_for_product(product_id))
        return ratings


class InMemoryRatingStore(RatingStore):
    def __init__(self, ratings: Optional[Iterable[ProductRating]] = None):
        self._documents: Dict[str, ProductRating] = {}
        for rating in ratings or []:
            self._documents[rating.document_id] = rating

    async def save_rating(self, rating: ProductRating) -> None:
        self._documents[rating.document_id] = rating

    async def ratings_for_product(self, product_id: str) -> List[ProductRating]:
        return [rating for rating in self._documents.values() if rating.product_id == product_id]

    def __len__(self) -> int:
        return len(self._documents)


# ---- Firestore value encoding ----

def _encode_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _decode_timestamp(value: str) -> datetime:
    """
    Firestore returns RFC3339 UTC timestamps with up to nanosecond precision.
    """
    value = value.rstrip("Z")
    if "." in value:
        whole, fraction = value.split(".", 1)
        value = f"{whole}.{fraction[:6].ljust(6, '0')}"
    return datetime.fromisoformat(value)


def rating_to_fields(rating: ProductRating) -> Dict[str, Dict[str, str]]:
    return {
        "productId": {"stringValue": rating.product_id},
        "customerId": {"stringValue": rating.customer_id},
        "orderId": {"stringValue": rating.order_id},
        "rating": {"integerValue": str(rating.rating)},
        "createdAt": {"timestampValue": _encode_timestamp(rating.created_at)},
    }


def rating_from_document(document: Dict[str, Any]) -> ProductRating:
    fields = document["fields"]
    return ProductRating(
        product_id=fields["productId"]["stringValue"],
        customer_id=fields["customerId"]["stringValue"],
        order_id=fields["orderId"]["stringValue"],
        rating=int(fields["rating"]["integerValue"]),
        created_at=_decode_timestamp(fields["createdAt"]["timestampValue"]),
    )


class FirestoreRatingStore(RatingStore):
    """
    Firestore REST Adapter

    Sole responsibility:
    - Talk to Firestore via HTTP
    - Convert ProductRating <-> Firestore typed fields
    - Raise RatingStoreError on any transport or decoding problem
    """
    BASE_URL = "https://firestore.googleapis.com/v1"

    def __init__(
        self,
        project_id: str,
        api_key: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 5,
    ):
        if not project_id:
            raise ValueError("Firestore project id not set. Please set FIRESTORE_PROJECT_ID in the .env file.")
        self.project_id = project_id
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout #seconds to wait for Firestore before giving up

    @classmethod
    def from_settings(cls, session: Optional[requests.Session] = None) -> FirestoreRatingStore:
        return cls(
            settings.FIRESTORE_PROJECT_ID,
            settings.FIRESTORE_API_KEY,
            session=session,
            timeout=settings.FIRESTORE_TIMEOUT,
        )

    #----------------
    # URL helpers
    #----------------
    @property
    def documents_url(self) -> str:
        return f"{self.BASE_URL}/projects/{self.project_id}/databases/(default)/documents"

    def document_url(self, document_id: str) -> str:
        return f"{self.documents_url}/{RATINGS_COLLECTION}/{document_id}"

    def _params(self) -> Dict[str, str]:
        return {"key": self.api_key} if self.api_key else {}

    #----------------
    # Public async API
    #----------------
    async def save_rating(self, rating: ProductRating) -> None:
        await asyncio.to_thread(self._save_rating_sync, rating)

    async def ratings_for_product(self, product_id: str) -> List[ProductRating]:
        return await asyncio.to_thread(
            self._run_query,
            {"fieldFilter": {
                "field": {"fieldPath": "productId"},
                "op": "EQUAL",
                "value": {"stringValue": product_id},
            }},
            "Failed to get ratings",
        )

    async def ratings_for_products(self, product_ids: Iterable[str]) -> List[ProductRating]:
        product_ids = list(product_ids)
        ratings: List[ProductRating] = []
        for start in range(0, len(product_ids), IN_QUERY_LIMIT):
            batch = product_ids[start: start + IN_QUERY_LIMIT]
            ratings.extend(
                await asyncio.to_thread(
                    self._run_query,
                    {"fieldFilter": {
                        "field": {"fieldPath": "productId"},
                        "op": "IN",
                        "value": {"arrayValue": {"values": [{"stringValue": pid} for pid in batch]}},
                    }},
                    "Failed to get vendor ratings",
                )
            )
        return ratings

    #----------------
    # Blocking HTTP calls (run in a worker thread)
    #----------------
    def _save_rating_sync(self, rating: ProductRating) -> None:
        try:
            response = self.session.patch(
                self.document_url(rating.document_id),
                params=self._params(),
                json={"fields": rating_to_fields(rating)},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error("Firestore save failed for %s: %s", rating.document_id, e)
            raise RatingStoreError(f"Failed to save rating: {e}") from e

    def _run_query(self, where: Dict[str, Any], failure_message: str) -> List[ProductRating]:
        body = {
            "structuredQuery": {
                "from": [{"collectionId": RATINGS_COLLECTION}],
                "where": where,
            }
        }
        try:
            response = self.session.post(
                f"{self.documents_url}:runQuery",
                params=self._params(),
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            rows = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Firestore query failed: %s", e)
            raise RatingStoreError(f"{failure_message}: {e}") from e

        #runQuery returns one row per match, plus a bare {"readTime": ...} row when empty
        try:
            return [rating_from_document(row["document"]) for row in rows if "document" in row]
        except (KeyError, TypeError, ValueError) as e:
            raise RatingStoreError(f"{failure_message}: malformed document ({e})") from e
