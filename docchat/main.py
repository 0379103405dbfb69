# docchat/main.py
import logging
import os
from typing import Dict, List, Optional
from fastapi import FastAPI, HTTPException, UploadFile, File, Form
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
import openai
from dotenv import load_dotenv

from .chat import build_messages, stream_events
from .chunk_store import ChunkStore, FileStore, storage_name
from .errors import (
    DocumentLimitError,
    DocumentNotFoundError,
    DownloadError,
    ExtractionError,
    InsertError,
)
from .models import SUPPORTED_TYPES
from .pipeline import build_context_bundle, process_document

# ------------------ Load environment ------------------
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
log = logging.getLogger(__name__)

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-3.5-turbo")
STORE_PATH = os.getenv("STORE_PATH", "./data/store.json")
FILES_DIR = os.getenv("FILES_DIR", "./data/files")
MAX_DOCUMENTS = int(os.getenv("MAX_DOCUMENTS", "10"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
HISTORY_MESSAGES = int(os.getenv("HISTORY_MESSAGES", "6"))

if not OPENAI_API_KEY:
    raise RuntimeError("OPENAI_API_KEY not set. Create a .env with your key or set env var.")

openai.api_key = OPENAI_API_KEY
client = openai.OpenAI()

# ------------------ Initialize app & store ------------------
app = FastAPI(title="Document Chat API")

store = ChunkStore(path=STORE_PATH, max_documents=MAX_DOCUMENTS)
files = FileStore(root=FILES_DIR)

# ------------------ Schemas ------------------
class HistoryMessage(BaseModel):
    role: str
    content: str

class ChatIn(BaseModel):
    message: str = ""
    document_ids: List[str] = Field(default_factory=list)
    conversation_history: List[HistoryMessage] = Field(default_factory=list)

# ------------------ Health ------------------
@app.get("/health")
async def health():
    return {"status": "ok"}

# ------------------ List Documents ------------------
@app.get("/documents")
async def list_documents():
    """
    Returns a list of all documents with their processing status and chunk counts.
    """
    return store.list_documents()

# ------------------ Delete Document ------------------
@app.delete("/documents/{doc_id}")
async def delete_document(doc_id: str):
    """
    Deletes a document, its chunks, and its stored file.
    """
    try:
        doc = store.get_document(doc_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")

    store.delete_document(doc_id)
    files.remove(doc.storage_path)
    return {"deleted": True, "doc_id": doc_id}

# ------------------ Process Document ------------------
def _process(doc_id: str) -> Dict[str, object]:
    try:
        chunks = process_document(store, files, doc_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
    except DownloadError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ExtractionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InsertError as e:
        raise HTTPException(status_code=500, detail=f"Failed to store chunks: {str(e)}")

    return {"success": True, "doc_id": doc_id, "chunks": chunks}


@app.post("/documents/{doc_id}/process")
async def reprocess_document(doc_id: str):
    """
    Re-runs extraction and chunking for an already uploaded document.
    Existing chunks are replaced.
    """
    return _process(doc_id)

# ------------------ Upload File ------------------
@app.post("/upload")
async def upload_file(
    file: UploadFile = File(...),
    name: Optional[str] = Form(None),
):
    """
    Upload a file (PDF, DOCX, CSV or TXT). The file is stored, its text is
    extracted and chunked, and the chunks are saved for chat retrieval.
    """
    data = await file.read()
    filename = file.filename or "file"
    file_type = os.path.splitext(filename)[1].lower().lstrip(".")

    if file_type not in SUPPORTED_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Unsupported file format. Supported: .pdf, .docx, .csv, .txt",
        )
    try:
        stored_name = storage_name(filename)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid file name")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB",
        )

    try:
        doc = store.add_document(
            name=name or stored_name,
            file_type=file_type,
            file_size=len(data),
            filename=stored_name,
        )
    except DocumentLimitError as e:
        raise HTTPException(status_code=409, detail=str(e))

    files.upload(doc.storage_path, data)
    log.info("Processing document: %s", doc.id)
    return _process(doc.id)

# ------------------ Chat Endpoint ------------------
@app.post("/chat")
async def chat(payload: ChatIn):
    """
    Given a user message and a set of documents, this endpoint:
    1. Picks the relevant chunks (first chunks for summaries, keyword hits otherwise)
    2. Builds the system prompt around them
    3. Streams the LLM answer back as server-sent events, sources first
    """
    if not payload.message or not payload.document_ids:
        raise HTTPException(status_code=400, detail="Message and document IDs are required")

    log.info("Chat request: %d documents", len(payload.document_ids))

    bundle = build_context_bundle(store, payload.message, payload.document_ids)
    messages = build_messages(
        bundle.context,
        payload.message,
        history=[m.model_dump() for m in payload.conversation_history],
        history_limit=HISTORY_MESSAGES,
    )

    try:
        completion = client.chat.completions.create(
            model=LLM_MODEL,
            messages=messages,
            stream=True,
        )
    except openai.RateLimitError:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Please try again later."
        )
    except openai.AuthenticationError:
        raise HTTPException(
            status_code=401,
            detail="Invalid OpenAI API key. Please check your OPENAI_API_KEY environment variable."
        )
    except openai.APIStatusError as e:
        if e.status_code == 402:
            raise HTTPException(
                status_code=402,
                detail="Usage limit reached. Please add credits."
            )
        log.error("AI Gateway error: %s %s", e.status_code, e.message)
        raise HTTPException(
            status_code=502,
            detail=f"OpenAI API error: {str(e)}"
        )
    except openai.APIError as e:
        raise HTTPException(
            status_code=502,
            detail=f"OpenAI API error: {str(e)}"
        )

    return StreamingResponse(
        stream_events(bundle.sources, completion),
        media_type="text/event-stream",
    )
