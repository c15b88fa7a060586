from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union
from pydantic import BaseModel, Field, ConfigDict


class SortBy(str, Enum):
    """Orderings the backend accepts when listing local branches."""
    NAME = "NAME"
    UPDATED_ASC = "UPDATED_ASC"
    UPDATED_DESC = "UPDATED_DESC"


class RepositoryHandle(BaseModel):
    """
    Identifies a repository on the backend. Sent verbatim with every request.
    """
    model_config = ConfigDict(frozen=True)

    storage_name: str = Field(..., min_length=1, description="Backend storage the repository lives on")
    relative_path: str = Field(..., min_length=1, description="Path of the repository inside its storage")
    gl_repository: str = Field("", description="Optional project identifier forwarded to the backend")


class _CommitMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Commit object id")
    message: str = Field("", description="Commit message, force-decoded as UTF-8")
    authored_date: Optional[datetime] = None
    author_name: str = ""
    author_email: str = ""
    committed_date: Optional[datetime] = None
    committer_name: str = ""
    committer_email: str = ""


class PartialCommit(_CommitMetadata):
    """
    Commit metadata built from a branch listing.

    ``message`` holds the subject line only, never the full body. Callers
    that need the complete message must look the commit up separately.
    """


class Commit(_CommitMetadata):
    """
    A commit as returned in full by the backend. ``message`` is the whole body.
    """
    subject: str = ""
    parent_ids: Tuple[str, ...] = ()


class Branch(BaseModel):
    """
    Immutable branch value. ``name`` never carries the refs/heads/ prefix.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Short branch name")
    target_commit_id: str = Field(..., description="Id of the commit the branch points to")
    commit: Optional[Union[Commit, PartialCommit]] = None


class Tag(BaseModel):
    """
    Immutable tag value. ``name`` never carries the refs/tags/ prefix.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Short tag name")
    id: str = Field("", description="Tag object id for annotated tags, commit id otherwise")
    target_commit_id: str = ""
    message: str = Field("", description="Annotation message; empty for lightweight tags")
    commit: Optional[Commit] = None
