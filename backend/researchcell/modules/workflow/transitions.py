"""Review state machine for papers and projects.

Defines the legal (reviewer_status, event) -> reviewer_status transitions
per submission kind. Services call `next_reviewer_status` before writing;
nothing else in the package decides reviewer-status legality.
"""

import enum
from typing import Dict, FrozenSet, Tuple

from researchcell.core.exceptions import ConflictError, InvalidTransitionError, ValidationError
from researchcell.models.submission import (
    SubmissionKind,
    ReviewerStatus,
    PaperStatus,
    ProjectStatus,
)


class ReviewEvent(str, enum.Enum):
    ASSIGN_REVIEWER = "ASSIGN_REVIEWER"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    ACCEPT_FOR_PUBLISH = "ACCEPT_FOR_PUBLISH"
    REJECT_FOR_PUBLISH = "REJECT_FOR_PUBLISH"
    REQUEST_UPDATES = "REQUEST_UPDATES"
    SUBMIT_REVISION = "SUBMIT_REVISION"


class Decision(str, enum.Enum):
    """Reviewer decisions accepted by ReviewWorkflowEngine.decide"""
    APPROVE = "approve"
    REJECT = "reject"
    ACCEPT_FOR_PUBLISH = "accept_for_publish"
    REJECT_FOR_PUBLISH = "reject_for_publish"


class AdminAction(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    PUBLISH = "publish"


DECISION_EVENTS: Dict[Decision, ReviewEvent] = {
    Decision.APPROVE: ReviewEvent.APPROVE,
    Decision.REJECT: ReviewEvent.REJECT,
    Decision.ACCEPT_FOR_PUBLISH: ReviewEvent.ACCEPT_FOR_PUBLISH,
    Decision.REJECT_FOR_PUBLISH: ReviewEvent.REJECT_FOR_PUBLISH,
}

PUBLISH_DECISIONS: FrozenSet[Decision] = frozenset({
    Decision.ACCEPT_FOR_PUBLISH,
    Decision.REJECT_FOR_PUBLISH,
})

_DECIDABLE = (
    ReviewerStatus.PENDING,
    ReviewerStatus.ACCEPTED,
    ReviewerStatus.REJECTED,
    ReviewerStatus.NEEDS_UPDATES,
)

_Table = Dict[Tuple[ReviewerStatus, ReviewEvent], ReviewerStatus]


def _common_transitions() -> _Table:
    table: _Table = {}
    for status in _DECIDABLE:
        table[(status, ReviewEvent.APPROVE)] = ReviewerStatus.ACCEPTED
        table[(status, ReviewEvent.REJECT)] = ReviewerStatus.REJECTED
    for status in ReviewerStatus:
        table[(status, ReviewEvent.ASSIGN_REVIEWER)] = ReviewerStatus.PENDING
    return table


def _paper_transitions() -> _Table:
    table = _common_transitions()
    table[(ReviewerStatus.ACCEPTED, ReviewEvent.ACCEPT_FOR_PUBLISH)] = ReviewerStatus.ACCEPTED_FOR_PUBLISH
    table[(ReviewerStatus.ACCEPTED, ReviewEvent.REJECT_FOR_PUBLISH)] = ReviewerStatus.REJECTED_FOR_PUBLISH
    return table


def _project_transitions() -> _Table:
    table = _common_transitions()
    for status in _DECIDABLE:
        table[(status, ReviewEvent.REQUEST_UPDATES)] = ReviewerStatus.NEEDS_UPDATES
    table[(ReviewerStatus.NEEDS_UPDATES, ReviewEvent.SUBMIT_REVISION)] = ReviewerStatus.PENDING
    table[(ReviewerStatus.PENDING, ReviewEvent.SUBMIT_REVISION)] = ReviewerStatus.PENDING
    return table


TRANSITIONS: Dict[SubmissionKind, _Table] = {
    SubmissionKind.PAPER: _paper_transitions(),
    SubmissionKind.PROJECT: _project_transitions(),
}

SUPPORTED_EVENTS: Dict[SubmissionKind, FrozenSet[ReviewEvent]] = {
    kind: frozenset(event for _, event in table)
    for kind, table in TRANSITIONS.items()
}

# reviewer_status values that let an admin publish
PUBLISHABLE_REVIEWER_STATUSES: Dict[SubmissionKind, FrozenSet[ReviewerStatus]] = {
    SubmissionKind.PAPER: frozenset({ReviewerStatus.ACCEPTED, ReviewerStatus.ACCEPTED_FOR_PUBLISH}),
    SubmissionKind.PROJECT: frozenset({ReviewerStatus.ACCEPTED}),
}

ADMIN_ACTION_STATUS = {
    SubmissionKind.PAPER: {
        AdminAction.ACCEPT: PaperStatus.ON_REVIEW,
        AdminAction.REJECT: PaperStatus.REJECT,
        AdminAction.PUBLISH: PaperStatus.PUBLISH,
    },
    SubmissionKind.PROJECT: {
        AdminAction.ACCEPT: ProjectStatus.ONGOING,
        AdminAction.REJECT: ProjectStatus.CANCELLED,
        AdminAction.PUBLISH: ProjectStatus.PUBLISH,
    },
}


def can_transition(kind: SubmissionKind, current: ReviewerStatus, event: ReviewEvent) -> bool:
    """Check whether `event` is legal from `current` for this kind."""
    return (ReviewerStatus(current), ReviewEvent(event)) in TRANSITIONS[SubmissionKind(kind)]


def ensure_event_supported(kind: SubmissionKind, event: ReviewEvent) -> None:
    kind = SubmissionKind(kind)
    event = ReviewEvent(event)
    if event not in SUPPORTED_EVENTS[kind]:
        raise ValidationError(f"'{event.value}' is not supported for a {kind.value}", field="event")


def next_reviewer_status(kind: SubmissionKind, current: ReviewerStatus, event: ReviewEvent) -> ReviewerStatus:
    """
    Resolve the reviewer status that `event` leads to.

    Raises:
        ValidationError: the event does not exist for this submission kind
        InvalidTransitionError: the event exists but not from `current`
    """
    kind = SubmissionKind(kind)
    event = ReviewEvent(event)
    ensure_event_supported(kind, event)

    current = ReviewerStatus(current)
    try:
        return TRANSITIONS[kind][(current, event)]
    except KeyError:
        raise InvalidTransitionError(current.value, event.value)


def is_publishable(kind: SubmissionKind, reviewer_status: ReviewerStatus) -> bool:
    return ReviewerStatus(reviewer_status) in PUBLISHABLE_REVIEWER_STATUSES[SubmissionKind(kind)]


def ensure_not_frozen(submission) -> None:
    """Published submissions no longer take review or content changes"""
    if submission.is_published:
        raise ConflictError(
            f"Published {submission.kind.value}s are frozen and cannot be changed",
            details={"submission_id": submission.id, "status": submission.status.value},
        )
