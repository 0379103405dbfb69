from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

SUPPORTED_TYPES = ("pdf", "docx", "csv", "txt")


@dataclass(frozen=True)
class Chunk:
    content: str
    index: int
    source_label: str


@dataclass
class ScoredChunk:
    chunk: Chunk
    score: int = 0


@dataclass(frozen=True)
class SourceRef:
    document_name: str
    chunk_index: int
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documentName": self.document_name,
            "chunkIndex": self.chunk_index,
            "content": self.content,
        }


@dataclass
class ContextBundle:
    chunks: List[Chunk]
    context: str
    sources: List[SourceRef] = field(default_factory=list)


@dataclass
class DocumentRecord:
    id: str
    name: str
    file_type: str
    file_size: int
    storage_path: str
    status: str = "processing"  # processing | ready | error
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
