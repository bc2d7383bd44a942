from typing import Any, Dict, List, Optional

import structlog
from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists, GoogleAPICallError
from google.cloud.firestore_v1 import FieldFilter

from ...exceptions import StoreError
from ...utils.url_utils import document_key
from ..models.article import ArticleRecord, ArticleState

logger = structlog.get_logger(__name__)


class ArticleRepository:
    """
    Firestore-backed article store keyed by document_key(url).

    Writes are merges: fields present in the record overwrite, absent fields are
    left untouched, so concurrent or repeated runs on the same URL converge on
    one document.
    """

    def __init__(self, db, collection_name: str = "articles"):
        self.db = db
        self.collection_name = collection_name

    @property
    def collection(self):
        return self.db.collection(self.collection_name)

    def _document(self, url: str):
        return self.collection.document(document_key(url))

    def get(self, url: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = self._document(url).get()
        except GoogleAPICallError as e:
            raise StoreError(f"Failed to read article {url}", details={"error": str(e)}) from e
        return snapshot.to_dict() if snapshot.exists else None

    def exists(self, url: str) -> ArticleState:
        document = self.get(url)
        if document is None:
            return ArticleState(present=False, complete=False)
        description = document.get("description") or ""
        return ArticleState(present=True, complete=bool(description.strip()))

    def upsert(self, record: ArticleRecord) -> Dict[str, Any]:
        """
        Create the document, or merge into it when it already exists.

        The create is atomic on the server, so `createdAt` is written by exactly
        one writer even when two runs persist the same URL at once.
        """
        doc_ref = self._document(record.url)
        data = record.to_document()
        data["updatedAt"] = firestore.SERVER_TIMESTAMP

        try:
            try:
                doc_ref.create({**data, "createdAt": firestore.SERVER_TIMESTAMP})
            except AlreadyExists:
                doc_ref.set(data, merge=True)
        except GoogleAPICallError as e:
            raise StoreError(f"Failed to write article {record.url}", details={"error": str(e)}) from e

        logger.info("Article upserted", url=record.url, document_key=record.document_key, complete=record.is_complete)
        return data

    def filter_unprocessed(self, urls: List[str]) -> List[str]:
        """URLs without a complete record, input order kept."""
        return [url for url in urls if not self.exists(url).complete]

    def list_incomplete(self, limit: int = 10) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        try:
            query = self.collection.where(filter=FieldFilter("description", "==", "")).limit(limit)
            return [snapshot.to_dict() for snapshot in query.stream()]
        except GoogleAPICallError as e:
            raise StoreError("Failed to query incomplete articles", details={"error": str(e)}) from e
