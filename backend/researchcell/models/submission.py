"""
Submission models: research papers and ongoing projects.

Both kinds share the review axis (reviewer, reviewer_status, comments,
reviewed_at) through ReviewableMixin. `status` is the lifecycle axis and
has a different vocabulary per kind. Every row carries a `version`
counter that SQLAlchemy checks and bumps on each UPDATE.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Integer, Text, ForeignKey, Table, JSON
from sqlalchemy.orm import relationship, declared_attr
import enum

from researchcell.core.database import Base
from researchcell.core.types import GUID, generate_uuid, utcnow


class SubmissionKind(str, enum.Enum):
    PAPER = "paper"
    PROJECT = "project"


class PaperStatus(str, enum.Enum):
    UPLOAD = "UPLOAD"
    ON_REVIEW = "ON_REVIEW"
    PUBLISH = "PUBLISH"
    REJECT = "REJECT"


class ProjectStatus(str, enum.Enum):
    UPLOAD = "UPLOAD"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    PUBLISH = "PUBLISH"
    CANCELLED = "CANCELLED"


class ReviewerStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    NEEDS_UPDATES = "NEEDS_UPDATES"
    ACCEPTED_FOR_PUBLISH = "ACCEPTED_FOR_PUBLISH"
    REJECTED_FOR_PUBLISH = "REJECTED_FOR_PUBLISH"


# Association tables
paper_authors = Table(
    "paper_authors",
    Base.metadata,
    Column("paper_id", GUID, ForeignKey("research_papers.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", GUID, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

paper_advisors = Table(
    "paper_advisors",
    Base.metadata,
    Column("paper_id", GUID, ForeignKey("research_papers.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", GUID, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

project_members = Table(
    "project_members",
    Base.metadata,
    Column("project_id", GUID, ForeignKey("ongoing_projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", GUID, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

project_advisors = Table(
    "project_advisors",
    Base.metadata,
    Column("project_id", GUID, ForeignKey("ongoing_projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", GUID, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class ReviewableMixin:
    """Columns of the review axis shared by papers and projects"""

    reviewer_status = Column(SQLEnum(ReviewerStatus), default=ReviewerStatus.PENDING, nullable=False, index=True)
    reviewer_comments = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    @declared_attr
    def reviewer_id(cls):
        return Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    @declared_attr
    def reviewer(cls):
        return relationship("User", lazy="selectin")

    @property
    def is_published(self) -> bool:
        return self.status is not None and self.status.value == "PUBLISH"


class ResearchPaper(ReviewableMixin, Base):
    """Research paper submitted by one or more student authors"""
    __tablename__ = "research_papers"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False, index=True)
    abstract = Column(Text, nullable=False)
    file_path = Column(String(1000), nullable=False)
    keywords = Column(JSON, nullable=False, default=list)

    status = Column(SQLEnum(PaperStatus), default=PaperStatus.UPLOAD, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)

    authors = relationship("User", secondary=paper_authors, lazy="selectin")
    faculty_advisors = relationship("User", secondary=paper_advisors, lazy="selectin")

    __mapper_args__ = {"version_id_col": version}

    kind = SubmissionKind.PAPER

    @property
    def owners(self):
        return self.authors

    def __repr__(self):
        return f"<ResearchPaper {self.id} {self.status}/{self.reviewer_status}>"


class OnGoingProject(ReviewableMixin, Base):
    """Student project, reviewed with an optional request-updates loop"""
    __tablename__ = "ongoing_projects"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False, index=True)
    description = Column(Text, nullable=False)
    project_link = Column(String(1000), nullable=True)
    project_image = Column(String(1000), nullable=True)

    status = Column(SQLEnum(ProjectStatus), default=ProjectStatus.UPLOAD, nullable=False, index=True)

    # Revision loop
    needs_update = Column(Boolean, default=False, nullable=False)
    update_request = Column(Text, nullable=True)
    update_deadline = Column(DateTime, nullable=True)
    student_update_comments = Column(Text, nullable=True)
    student_updated_at = Column(DateTime, nullable=True)
    revision_count = Column(Integer, default=0, nullable=False)

    version = Column(Integer, nullable=False, default=1)

    members = relationship("User", secondary=project_members, lazy="selectin")
    faculty_advisors = relationship("User", secondary=project_advisors, lazy="selectin")
    revisions = relationship(
        "RevisionRound",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="RevisionRound.round_number",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    kind = SubmissionKind.PROJECT

    @property
    def owners(self):
        return self.members

    def __repr__(self):
        return f"<OnGoingProject {self.id} {self.status}/{self.reviewer_status}>"


SUBMISSION_MODELS = {
    SubmissionKind.PAPER: ResearchPaper,
    SubmissionKind.PROJECT: OnGoingProject,
}


def model_for(kind: SubmissionKind):
    return SUBMISSION_MODELS[SubmissionKind(kind)]
