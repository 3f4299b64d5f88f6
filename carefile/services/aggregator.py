"""Collect the text and image content of a case's documents for analysis.

Each document contributes what it can: cached text, freshly extracted text, and
(for images) the image payload itself. A document whose retrieval or extraction
fails is skipped for that modality; the failure is logged, never raised.
"""

import logging
from dataclasses import dataclass, field

from carefile.database import DatabaseAdapter
from carefile.models.document import Document
from carefile.services.drive import download_file
from carefile.services.extraction import extract_document_text
from carefile.services.media import to_data_uri
from carefile.services.records import cache_extracted_text, cache_file_data

logger = logging.getLogger(__name__)


@dataclass
class AggregatedContent:
    texts: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    document_count: int = 0
    image_document_count: int = 0
    missing_image_payloads: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.texts and not self.images


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def format_text_block(file_name: str, text: str) -> str:
    return f"--- Document: {file_name} ---\n{text.strip()}"


async def _resolve_payload(db: DatabaseAdapter, document: Document) -> str | None:
    """Return the document's data URI, fetching it from storage if it was not stored inline."""
    if _has_text(document.file_data):
        return to_data_uri(document.file_data, document.file_type)
    if not document.has_storage_reference:
        return None

    try:
        payload = await download_file(
            file_id=document.google_drive_id,
            url=document.google_drive_url,
            mime_type=document.file_type,
        )
    except Exception as exc:
        logger.warning("Storage retrieval failed for document %s (%s): %s", document.id, document.file_name, exc)
        return None

    await cache_file_data(db, document.id, payload)
    return payload


async def _extract(db: DatabaseAdapter, document: Document, payload: str) -> str | None:
    try:
        text = await extract_document_text(payload, document.file_type)
    except Exception as exc:
        logger.warning("Text extraction failed for document %s (%s): %s", document.id, document.file_name, exc)
        return None

    await cache_extracted_text(db, document.id, text)
    if _has_text(text):
        logger.info("Cached extracted text for document %s", document.id)
    else:
        logger.info("No text found in document %s; it will not be extracted again", document.id)
    return text


async def aggregate_documents(db: DatabaseAdapter, documents: list[Document]) -> AggregatedContent:
    content = AggregatedContent(document_count=len(documents))

    for document in documents:
        extractable = document.is_image or document.is_pdf
        text = document.extracted_text if _has_text(document.extracted_text) else None
        needs_extraction = extractable and text is None and document.text_extracted_at is None

        payload = None
        if document.is_image or needs_extraction:
            payload = await _resolve_payload(db, document)

        if document.is_image:
            content.image_document_count += 1
            if payload:
                content.images.append(payload)
            else:
                content.missing_image_payloads += 1

        if needs_extraction and payload:
            text = await _extract(db, document, payload)

        if _has_text(text):
            content.texts.append(format_text_block(document.file_name, text))

    logger.info(
        "Aggregated %d documents: %d text blocks, %d images",
        content.document_count, len(content.texts), len(content.images),
    )
    return content
