import io
import os
import struct
import tempfile
import zipfile

import pytest

# The app reads its configuration at import time.
_TMP = tempfile.mkdtemp(prefix="docchat-tests-")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ["STORE_PATH"] = os.path.join(_TMP, "store.json")
os.environ["FILES_DIR"] = os.path.join(_TMP, "files")


def build_pdf(lines):
    """Single page PDF showing each line with a Tj operator."""
    ops = ["BT", "/F1 12 Tf", "72 720 Td", "14 TL"]
    for line in lines:
        escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        ops.append(f"({escaped}) Tj T*")
    ops.append("ET")
    content = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(content) + content + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_at,
    )
    return bytes(out)


def build_docx(paragraphs):
    """Minimal zipped WordprocessingML document."""
    runs = "".join(
        f'<w:p><w:r><w:t xml:space="preserve">{p}</w:t></w:r></w:p>' for p in paragraphs
    )
    xml = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
        f"<w:body>{runs}</w:body></w:document>"
    )
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("[Content_Types].xml", "<Types/>")
        archive.writestr("word/document.xml", xml)
    return buf.getvalue()


def corrupt_zip_member(data, member, length=20):
    """Flip the first bytes of a member's compressed payload, leaving the archive index intact."""
    info = zipfile.ZipFile(io.BytesIO(data)).getinfo(member)
    name_len, extra_len = struct.unpack("<HH", data[info.header_offset + 26:info.header_offset + 30])
    start = info.header_offset + 30 + name_len + extra_len
    damaged = bytearray(data)
    for i in range(start, start + length):
        damaged[i] ^= 0xFF
    return bytes(damaged)


@pytest.fixture
def sample_text():
    return (
        "The service agreement runs for twelve months from the signing date. "
        "Either party may terminate with thirty days written notice. "
        "A penalty applies when the supplier misses a delivery deadline, and the "
        "penalty clause caps the total at ten percent of the contract value. "
        "Invoices are payable within forty five days of receipt."
    )


@pytest.fixture
def pdf_bytes():
    return build_pdf([
        "Quarterly report for the northern region.",
        "Revenue grew steadily across every product line this quarter.",
        "Operating costs stayed flat while headcount increased slightly.",
    ])


@pytest.fixture
def docx_bytes():
    return build_docx([
        "Employee handbook introduction &amp; overview.",
        "Staff are expected to record their working hours every week.",
        "Holiday requests must be approved by a line manager in advance.",
    ])
