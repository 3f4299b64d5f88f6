from carefile.models.base import CamelModel


class DeletionCounts(CamelModel):
    notes: int = 0
    documents: int = 0
    cases: int = 0
    patients: int = 0
    users: int = 0


class CleanDbResponse(CamelModel):
    success: bool = True
    message: str
    deleted: DeletionCounts
