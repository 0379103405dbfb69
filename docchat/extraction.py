import html
import io
import logging
import re
import zipfile
import zlib

from PyPDF2 import PdfReader

from .errors import ExtractionError, UnsupportedFormatError
from .utils import count_alpha, sanitize_text

log = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 50
MIN_PDF_ALPHA = 50
# below this the string scans found almost nothing and the printable-run scan takes over
FALLBACK_MIN_LENGTH = 100

INSUFFICIENT_TEXT_MESSAGE = (
    "Could not extract sufficient text from document. "
    "The PDF may be image-based or protected."
)

_DOCX_TEXT = re.compile(r"<w:t(?:\s[^>]*)?>([^<]*)</w:t>")
_STREAM = re.compile(r"stream\s*(.*?)\s*endstream", re.DOTALL)
_PAREN_STRING = re.compile(r"\(([^)]{2,})\)")
_ALNUM = re.compile(r"[a-zA-Z0-9]")
_LETTER = re.compile(r"[a-zA-Z]")
_PRINTABLE_RUN = re.compile(r"[\x20-\x7e]{4,}")

_PDF_ESCAPES = {"n": "\n", "r": "", "t": "\t"}


def read_text(file_bytes: bytes) -> str:
    return file_bytes.decode("utf-8", errors="replace")


def read_docx(file_bytes: bytes) -> str:
    """
    Pull the text runs out of WordprocessingML.

    This is a pattern scan over ``<w:t>`` elements rather than an XML parse.
    Zipped documents are scanned through their ``word/document.xml`` member;
    anything else is scanned as-is.
    """
    raw = None
    if zipfile.is_zipfile(io.BytesIO(file_bytes)):
        try:
            with zipfile.ZipFile(io.BytesIO(file_bytes)) as archive:
                raw = archive.read("word/document.xml").decode("utf-8", errors="replace")
        except (KeyError, EOFError, zipfile.BadZipFile, zlib.error, NotImplementedError) as e:
            log.warning("DOCX archive unreadable, scanning raw bytes: %s", e)
    if raw is None:
        raw = file_bytes.decode("utf-8", errors="replace")

    return " ".join(html.unescape(m) for m in _DOCX_TEXT.findall(raw))


def read_pdf(file_bytes: bytes) -> str:
    reader = PdfReader(io.BytesIO(file_bytes))
    text = []
    for p in reader.pages:
        try:
            text.append(p.extract_text() or "")
        except Exception:
            text.append("")
    return "\n".join(text)


def scan_pdf_bytes(file_bytes: bytes) -> str:
    """
    Best-effort text recovery for PDFs the parser cannot handle.

    Collects literal strings from text-show operators, then literal strings
    inside content streams, and finally falls back to any printable ASCII
    run containing a letter. Output may be partial or garbled.
    """
    parts = _scan_literal_strings(file_bytes)

    raw = file_bytes.decode("latin-1")
    for body in _STREAM.findall(raw):
        for candidate in _PAREN_STRING.findall(body):
            if _ALNUM.search(candidate):
                parts.append(candidate)

    combined = " ".join(parts)
    if len(combined) < FALLBACK_MIN_LENGTH:
        log.info("Fallback: extracting all printable characters")
        combined = " ".join(
            run for run in _PRINTABLE_RUN.findall(raw) if _LETTER.search(run)
        )
    return combined


def _scan_literal_strings(file_bytes: bytes):
    parts = []
    current = []
    in_parens = False
    escape_next = False

    for byte in file_bytes:
        char = chr(byte)
        if escape_next:
            current.append(_PDF_ESCAPES.get(char, char))
            escape_next = False
            continue
        if char == "\\" and in_parens:
            escape_next = True
            continue
        if char == "(" and not in_parens:
            in_parens = True
            current = []
            continue
        if char == ")" and in_parens:
            in_parens = False
            text = "".join(current)
            if text and _ALNUM.search(text):
                parts.append(text)
            continue
        if in_parens and (32 <= byte < 127 or byte >= 128):
            current.append(char)
    return parts


def extract_pdf_text(file_bytes: bytes) -> str:
    try:
        text = read_pdf(file_bytes)
    except Exception as e:
        log.warning("PDF parser failed, scanning raw bytes: %s", e)
        text = ""

    if count_alpha(text) >= MIN_PDF_ALPHA:
        return text

    fallback = scan_pdf_bytes(file_bytes)
    return fallback if count_alpha(fallback) > count_alpha(text) else text


_READERS = {
    "pdf": extract_pdf_text,
    "docx": read_docx,
    "csv": read_text,
    "txt": read_text,
}


def extract_text(file_bytes: bytes, file_type: str) -> str:
    """
    Convert raw file bytes into sanitized text.

    Raises ``UnsupportedFormatError`` for an unknown ``file_type`` and
    ``ExtractionError`` when the result is too short to be worth chunking.
    """
    reader = _READERS.get(file_type)
    if reader is None:
        raise UnsupportedFormatError(f"Unsupported file type: {file_type}")

    text = sanitize_text(reader(file_bytes))
    log.info("Extracted text length: %d", len(text))

    if len(text) < MIN_TEXT_LENGTH:
        raise ExtractionError(INSUFFICIENT_TEXT_MESSAGE)
    if file_type == "pdf" and count_alpha(text) < MIN_PDF_ALPHA:
        raise ExtractionError(INSUFFICIENT_TEXT_MESSAGE)
    return text
