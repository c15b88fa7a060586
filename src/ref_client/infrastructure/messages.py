"""
Request and response records exchanged with the ref service.

Ref names, commit subjects and bodies are raw bytes: git enforces no
encoding on them. In JSON they travel base64-encoded.
"""
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ref_client.domain.models import RepositoryHandle, SortBy


class WireMessage(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )


class CreateBranchStatus(str, Enum):
    OK = "OK"
    ERR_EXISTS = "ERR_EXISTS"
    ERR_INVALID = "ERR_INVALID"
    ERR_INVALID_START_POINT = "ERR_INVALID_START_POINT"


# ---- Nested records ----

class TimestampRecord(WireMessage):
    seconds: int = 0


class CommitAuthorRecord(WireMessage):
    name: bytes = b""
    email: bytes = b""
    date: Optional[TimestampRecord] = None


class FullCommitRecord(WireMessage):
    id: str
    subject: bytes = b""
    body: bytes = b""
    author: Optional[CommitAuthorRecord] = None
    committer: Optional[CommitAuthorRecord] = None
    parent_ids: List[str] = Field(default_factory=list)


class PartialCommitRecord(WireMessage):
    """Subject-only commit metadata, as sent with local branch listings."""
    id: str
    subject: bytes = b""
    author: Optional[CommitAuthorRecord] = None
    committer: Optional[CommitAuthorRecord] = None


class BranchRecord(WireMessage):
    name: bytes
    target_commit: FullCommitRecord


class LocalBranchRecord(WireMessage):
    name: bytes
    commit: PartialCommitRecord


class TagRecord(WireMessage):
    name: bytes
    id: str = ""
    target_commit: Optional[FullCommitRecord] = None
    message: bytes = b""


# ---- Requests ----

class RepositoryRequest(WireMessage):
    """Request carrying nothing but the repository."""
    repository: RepositoryHandle


class FindRefNameRequest(RepositoryRequest):
    commit_id: str
    prefix: bytes


class FindLocalBranchesRequest(RepositoryRequest):
    sort_by: Optional[SortBy] = None


class RefExistsRequest(RepositoryRequest):
    ref: bytes


class FindBranchRequest(RepositoryRequest):
    name: bytes


class CreateBranchRequest(RepositoryRequest):
    name: bytes
    start_point: bytes


class DeleteBranchRequest(RepositoryRequest):
    name: bytes


# ---- Responses ----

class FindAllBranchesResponse(WireMessage):
    branches: List[BranchRecord] = Field(default_factory=list)


class FindLocalBranchesResponse(WireMessage):
    branches: List[LocalBranchRecord] = Field(default_factory=list)


class FindAllTagsResponse(WireMessage):
    tags: List[TagRecord] = Field(default_factory=list)


class RefNamesResponse(WireMessage):
    """One chunk of a branch-name or tag-name stream."""
    names: List[bytes] = Field(default_factory=list)


class FindDefaultBranchNameResponse(WireMessage):
    name: bytes = b""


class FindRefNameResponse(WireMessage):
    name: bytes = b""


class RefExistsResponse(WireMessage):
    value: bool = False


class FindBranchResponse(WireMessage):
    branch: Optional[BranchRecord] = None


class CreateBranchResponse(WireMessage):
    # Kept as a plain string so unknown statuses reach the client intact.
    status: str
    branch: Optional[BranchRecord] = None


class DeleteBranchResponse(WireMessage):
    pass
