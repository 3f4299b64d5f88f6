from carefile.models.base import CamelModel


class NoteCreate(CamelModel):
    content: str | None = None
    author_id: str | None = None


class NoteAuthor(CamelModel):
    name: str
    role: str


class Note(CamelModel):
    id: str
    case_id: str
    author_id: str
    content: str
    created_at: str
    author: NoteAuthor | None = None
