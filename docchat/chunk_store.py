import json
import logging
import os
import shutil
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .errors import DocumentLimitError, DocumentNotFoundError, DownloadError, InsertError
from .models import Chunk, DocumentRecord

log = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 100
DOCUMENT_LIMIT_MESSAGE = "Document limit reached. Maximum {limit} documents allowed per user."


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def storage_name(filename: str) -> str:
    """Last path component of an uploaded file name, or ValueError when there is none."""
    base = os.path.basename(filename.replace("\\", "/"))
    if base in ("", ".", ".."):
        raise ValueError(f"Invalid file name: {filename!r}")
    return base


class ChunkStore:
    """
    Document and chunk rows persisted to a single JSON file.

    Layout:
    {
        "documents": [
            {"id": str, "name": str, "file_type": str, "file_size": int,
             "storage_path": str, "status": "processing|ready|error", ...},
            ...
        ],
        "chunks": [
            {"document_id": str, "chunk_index": int, "content": str,
             "metadata": {"source": str}},
            ...
        ]
    }
    """

    def __init__(self, path: str = "./data/store.json", max_documents: int = 10):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self.path = path
        self.max_documents = max_documents
        self._load()

    # ------------------ Internal loaders/savers ------------------
    def _load(self):
        if os.path.exists(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            data = {}
        self.documents: List[Dict[str, Any]] = data.get("documents", [])
        self.chunks: List[Dict[str, Any]] = data.get("chunks", [])

    def _save(self):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                {"documents": self.documents, "chunks": self.chunks},
                f,
                ensure_ascii=False,
                indent=2,
            )

    def _find(self, doc_id: str) -> Dict[str, Any]:
        for doc in self.documents:
            if doc["id"] == doc_id:
                return doc
        raise DocumentNotFoundError(f"Document not found: {doc_id}")

    # ------------------ Documents ------------------
    def add_document(
        self,
        name: str,
        file_type: str,
        file_size: int,
        filename: Optional[str] = None,
        doc_id: Optional[str] = None,
    ) -> DocumentRecord:
        """
        Register an upload as ``processing``. Its bytes live under
        ``<doc_id>/<filename>``; ``name`` is only the display label.
        """
        if len(self.documents) >= self.max_documents:
            raise DocumentLimitError(DOCUMENT_LIMIT_MESSAGE.format(limit=self.max_documents))

        doc_id = doc_id or str(uuid.uuid4())
        now = _now()
        record = DocumentRecord(
            id=doc_id,
            name=name,
            file_type=file_type,
            file_size=file_size,
            storage_path=f"{doc_id}/{storage_name(filename or name)}",
            status="processing",
            created_at=now,
            updated_at=now,
        )
        self.documents.append(record.to_dict())
        self._save()
        return record

    def get_document(self, doc_id: str) -> DocumentRecord:
        return DocumentRecord(**self._find(doc_id))

    def set_status(self, doc_id: str, status: str):
        doc = self._find(doc_id)
        doc["status"] = status
        doc["updated_at"] = _now()
        self._save()

    def list_documents(self) -> List[Dict[str, Any]]:
        """
        Returns all documents with their status and chunk counts.
        """
        counts: Dict[str, int] = {}
        for c in self.chunks:
            counts[c["document_id"]] = counts.get(c["document_id"], 0) + 1
        return [{**doc, "chunks": counts.get(doc["id"], 0)} for doc in self.documents]

    def delete_document(self, doc_id: str) -> bool:
        """
        Delete a document and every chunk belonging to it.
        """
        new_docs = [d for d in self.documents if d["id"] != doc_id]
        if len(new_docs) == len(self.documents):
            return False  # no match found

        self.documents = new_docs
        self.chunks = [c for c in self.chunks if c["document_id"] != doc_id]
        self._save()
        return True

    # ------------------ Chunks ------------------
    def delete_chunks(self, doc_id: str) -> int:
        before = len(self.chunks)
        self.chunks = [c for c in self.chunks if c["document_id"] != doc_id]
        self._save()
        return before - len(self.chunks)

    def insert_chunks(self, rows: Sequence[Dict[str, Any]]):
        for row in rows:
            if not row.get("document_id") or not isinstance(row.get("chunk_index"), int):
                raise InsertError(f"Invalid chunk row: {row!r:.120}")
        self.chunks.extend(dict(row) for row in rows)
        self._save()

    def replace_chunks(self, doc_id: str, chunks: Sequence[Chunk], batch_size: int = INSERT_BATCH_SIZE) -> int:
        """
        Delete the document's existing chunks, then insert the new ones in batches.

        A failing batch propagates; batches written before it are kept, so
        callers recover by calling this again.
        """
        self.delete_chunks(doc_id)
        rows = [
            {
                "document_id": doc_id,
                "chunk_index": c.index,
                "content": c.content,
                "metadata": {"source": c.source_label},
            }
            for c in chunks
        ]
        for i in range(0, len(rows), batch_size):
            try:
                self.insert_chunks(rows[i:i + batch_size])
            except InsertError:
                log.error("Error inserting chunks batch starting at %d for %s", i, doc_id)
                raise
        return len(rows)

    def fetch_chunks(self, doc_ids: Sequence[str], limit: int) -> List[Chunk]:
        """
        Chunks of the given documents ordered by chunk index, at most ``limit``.
        """
        names = {d["id"]: d["name"] for d in self.documents}
        wanted = set(doc_ids)
        rows = [c for c in self.chunks if c["document_id"] in wanted]
        rows.sort(key=lambda c: c["chunk_index"])
        return [
            Chunk(
                content=c["content"],
                index=c["chunk_index"],
                source_label=names.get(c["document_id"]) or c.get("metadata", {}).get("source", "Unknown"),
            )
            for c in rows[:limit]
        ]


class FileStore:
    """Raw uploads kept on local disk under ``<root>/<document id>/<file name>``."""

    def __init__(self, root: str = "./data/files"):
        os.makedirs(root, exist_ok=True)
        self.root = root

    def _full_path(self, storage_path: str) -> str:
        return os.path.join(self.root, *storage_path.split("/"))

    def upload(self, storage_path: str, data: bytes):
        full = self._full_path(storage_path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as f:
            f.write(data)

    def download(self, storage_path: str) -> bytes:
        try:
            with open(self._full_path(storage_path), "rb") as f:
                return f.read()
        except OSError as e:
            raise DownloadError("Failed to download file") from e

    def remove(self, storage_path: str):
        folder = os.path.dirname(self._full_path(storage_path))
        shutil.rmtree(folder, ignore_errors=True)
