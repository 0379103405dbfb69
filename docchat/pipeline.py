import logging
from typing import Sequence

from .chunk_store import ChunkStore, FileStore
from .errors import ExtractionError
from .extraction import extract_text
from .models import ContextBundle
from .retrieval import pool_limit, select
from .utils import chunk_text

log = logging.getLogger(__name__)


def process_document(store: ChunkStore, files: FileStore, doc_id: str) -> int:
    """
    Download a stored upload, extract and chunk its text, and replace its chunk rows.

    The document ends up ``ready`` on success. When extraction yields too
    little text it is marked ``error`` and no chunking happens. Returns the
    number of chunks written.
    """
    doc = store.get_document(doc_id)
    log.info("Document found: %s Type: %s", doc.name, doc.file_type)

    data = files.download(doc.storage_path)
    log.info("File downloaded, size: %d", len(data))

    try:
        text = extract_text(data, doc.file_type)
    except ExtractionError:
        log.error("Insufficient text extracted from document %s", doc_id)
        store.set_status(doc_id, "error")
        raise

    chunks = chunk_text(text, source_label=doc.name)
    log.info("Created chunks: %d", len(chunks))

    written = store.replace_chunks(doc_id, chunks)
    store.set_status(doc_id, "ready")
    log.info("Document processed successfully: %s", doc_id)
    return written


def build_context_bundle(store: ChunkStore, query: str, doc_ids: Sequence[str]) -> ContextBundle:
    chunks = store.fetch_chunks(doc_ids, limit=pool_limit(query))
    log.info("Fetched chunks: %d", len(chunks))

    bundle = select(query, chunks)
    log.info("Context length: %d", len(bundle.context))
    return bundle
