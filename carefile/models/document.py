from carefile.models.base import CamelModel

IMAGE_PREFIX = "image/"
PDF_TYPE = "application/pdf"


class DocumentCreate(CamelModel):
    file_name: str | None = None
    file_type: str | None = None
    file_data: str | None = None  # base64 or data URI
    google_drive_id: str | None = None
    google_drive_url: str | None = None
    extracted_text: str | None = None


class Document(CamelModel):
    id: str
    case_id: str
    file_name: str
    file_type: str
    file_data: str | None = None
    google_drive_id: str | None = None
    google_drive_url: str | None = None
    extracted_text: str | None = None
    text_extracted_at: str | None = None  # set once extraction has run, even if it found nothing
    created_at: str

    @property
    def is_image(self) -> bool:
        return self.file_type.lower().startswith(IMAGE_PREFIX)

    @property
    def is_pdf(self) -> bool:
        return self.file_type.lower() == PDF_TYPE

    @property
    def has_storage_reference(self) -> bool:
        return bool(self.google_drive_id or self.google_drive_url)
