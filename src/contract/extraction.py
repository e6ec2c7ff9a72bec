# This module downloads an uploaded contract and turns it into plain text for analysis.
# It exists so the analyzer only ever sees text, whatever format the candidate uploaded.
# PDFs are parsed locally with pypdf; images and DOCX files are transcribed by the vision model.
# Every failure surfaces as `ExtractionError` so the API can answer with a 422.

from __future__ import annotations

import base64
import io
import logging
from typing import Any

import requests
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from src.common.llm import LLMClient, LLMError
from src.common.settings import use_mock_ai

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
DOWNLOAD_CHUNK_SIZE = 64 * 1024
MIN_EXTRACTED_LENGTH = 100
DOCX_PAYLOAD_LIMIT = 50_000
TRANSCRIPTION_MAX_TOKENS = 4096

SUPPORTED_FILE_TYPES: tuple[str, ...] = ("pdf", "docx", "png", "jpg", "jpeg")
MIME_TYPES: dict[str, str] = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}

IMAGE_PROMPT = (
    "Extract all text from this employment contract image. Preserve the structure and formatting "
    "as much as possible. Return only the extracted text, no commentary."
)
DOCX_SYSTEM_PROMPT = (
    "You are a document text extractor. Extract all text content from the provided document data, "
    "preserving structure."
)

INSUFFICIENT_TEXT_MESSAGE = (
    "Could not extract sufficient text from the document. Please ensure the file is readable."
)


class ExtractionError(RuntimeError):
    """Raised when a contract file cannot be downloaded or read."""


def detect_file_type(file_url: str, file_name: str | None = None) -> str | None:
    """Resolve the file type from the name when given, otherwise from the URL path."""

    name = file_name or file_url.split("?", 1)[0].rstrip("/").split("/")[-1]
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return extension if extension in SUPPORTED_FILE_TYPES else None


def download_file(
    file_url: str, *, session: requests.Session | None = None, timeout_seconds: int = 30
) -> bytes:
    http = session or requests.Session()
    content = bytearray()
    try:
        with http.get(file_url, timeout=timeout_seconds, stream=True) as response:
            if response.status_code >= 400:
                raise ExtractionError(f"Failed to fetch file: {response.status_code}")
            declared = response.headers.get("Content-Length", "")
            if declared.isdigit() and int(declared) > MAX_FILE_SIZE:
                raise ExtractionError("File exceeds the 10 MB limit")
            # Content-Length is advisory; the stream itself is capped.
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                content.extend(chunk)
                if len(content) > MAX_FILE_SIZE:
                    raise ExtractionError("File exceeds the 10 MB limit")
    except requests.RequestException as exc:
        raise ExtractionError(f"Failed to fetch file: {exc}") from exc
    return bytes(content)


def extract_text_from_pdf(content: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(content))
        pages = [page.extract_text() or "" for page in reader.pages]
    except PdfReadError as exc:
        raise ExtractionError(f"Could not read PDF: {exc}") from exc
    return "\n".join(pages)


def _transcribe(llm: LLMClient | None, messages: list[dict[str, Any]]) -> str:
    if llm is None:
        raise ExtractionError("AI client is not configured for document transcription")
    try:
        return llm.complete(messages=messages, temperature=0.0, max_tokens=TRANSCRIPTION_MAX_TOKENS).content
    except LLMError as exc:
        raise ExtractionError(f"Document transcription failed: {exc}") from exc


def extract_text_from_image(content: bytes, mime_type: str, *, llm: LLMClient | None) -> str:
    data_url = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"
    return _transcribe(
        llm,
        [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": IMAGE_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url, "detail": "high"}},
                ],
            }
        ],
    )


def extract_text_from_docx(content: bytes, *, llm: LLMClient | None) -> str:
    encoded = base64.b64encode(content).decode("ascii")[:DOCX_PAYLOAD_LIMIT]
    return _transcribe(
        llm,
        [
            {"role": "system", "content": DOCX_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    "Extract all text from this DOCX document (base64 encoded). The document is an "
                    f"employment contract. Return only the extracted text content:\n\n{encoded}"
                ),
            },
        ],
    )


def _mock_transcription(file_type: str) -> str:
    return (
        f"[Mock transcription of {file_type} contract] EMPLOYMENT AGREEMENT. Employee shall receive a base "
        "salary payable in bi-weekly installments. Either party may terminate this Agreement upon thirty "
        "(30) days written notice. Employee agrees to hold Confidential Information in strict confidence."
    )


def extract_contract_text(
    file_url: str,
    file_type: str,
    *,
    llm: LLMClient | None = None,
    session: requests.Session | None = None,
) -> str:
    """Download the file and return its text; short results raise `ExtractionError`."""

    if file_type not in SUPPORTED_FILE_TYPES:
        raise ExtractionError(f"Unsupported file type: {file_type}")

    content = download_file(file_url, session=session)
    if file_type == "pdf":
        text = extract_text_from_pdf(content)
    elif use_mock_ai():
        text = _mock_transcription(file_type)
    elif file_type == "docx":
        text = extract_text_from_docx(content, llm=llm)
    else:
        text = extract_text_from_image(content, MIME_TYPES[file_type], llm=llm)

    if not text or len(text.strip()) < MIN_EXTRACTED_LENGTH:
        logger.warning("Extracted only %s characters from %s.", len(text.strip()) if text else 0, file_url)
        raise ExtractionError(INSUFFICIENT_TEXT_MESSAGE)
    return text
