"""Helpers shared by the workflow endpoints"""
from typing import Any, Dict, List, Optional

from fastapi import Query

from researchcell.core.config import settings
from researchcell.core.exceptions import ValidationError
from researchcell.models.submission import PaperStatus, ProjectStatus, SubmissionKind
from researchcell.schemas.submission import serialize_submission
from researchcell.utils.pagination import MAX_PAGE_SIZE, create_paginated_response

STATUS_ENUMS = {
    SubmissionKind.PAPER: PaperStatus,
    SubmissionKind.PROJECT: ProjectStatus,
}


def mutation_response(message: str, submission) -> Dict[str, Any]:
    return {"message": message, "submission": serialize_submission(submission)}


def page_response(items: List[Any], total: int, page: int, page_size: int) -> Dict[str, Any]:
    return create_paginated_response([serialize_submission(item) for item in items], total, page, page_size)


def parse_status(kind: SubmissionKind, value: Optional[str]):
    """Lifecycle status of the given kind, or ValidationError"""
    if value is None:
        return None
    enum_cls = STATUS_ENUMS[kind]
    try:
        return enum_cls(value.upper())
    except ValueError:
        allowed = ", ".join(s.value for s in enum_cls)
        raise ValidationError(f"Invalid {kind.value} status '{value}'; expected one of: {allowed}", field="status")


class PageParams:
    """page / page_size query parameters"""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    ):
        self.page = page
        self.page_size = page_size
