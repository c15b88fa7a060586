import logging
from datetime import datetime, timezone
from typing import AsyncIterable, AsyncIterator, Callable, NamedTuple, Optional, TypeVar, Union

from ref_client.domain.models import Branch, Commit, PartialCommit, Tag
from ref_client.infrastructure.messages import (
    BranchRecord,
    CommitAuthorRecord,
    FindAllTagsResponse,
    FullCommitRecord,
    LocalBranchRecord,
    PartialCommitRecord,
    RefNamesResponse,
    TagRecord,
    TimestampRecord,
)

logger = logging.getLogger(__name__)

BRANCH_REF_PREFIX = "refs/heads/"
TAG_REF_PREFIX = "refs/tags/"

T = TypeVar("T")


class DecodedText(NamedTuple):
    text: str
    lossy: bool


def coerce_utf8(raw: bytes) -> DecodedText:
    """
    Force-interprets raw git bytes as UTF-8.

    Git enforces no encoding on ref names or commit messages, so this is a
    best-effort, lossy step: undecodable sequences are replaced with U+FFFD
    and ``lossy`` is set. It never raises.

    Args:
        raw (bytes): Bytes exactly as received from the backend.

    Returns:
        DecodedText: The decoded text and whether replacement characters were inserted.
    """
    try:
        return DecodedText(raw.decode("utf-8"), False)
    except UnicodeDecodeError:
        logger.debug(f"Replaced undecodable bytes while decoding {raw[:64]!r}")
        return DecodedText(raw.decode("utf-8", errors="replace"), True)


def from_epoch(timestamp: Optional[TimestampRecord]) -> Optional[datetime]:
    """Seconds since the epoch to an aware UTC datetime. Sub-second precision is not carried."""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp.seconds, tz=timezone.utc)


def _strip_prefix(name: str, prefix: str) -> str:
    return name[len(prefix):] if name.startswith(prefix) else name


class RefTranslator:
    """
    Anti-corruption layer that translates ref service records into domain values.

    Each record shape has its own method; callers pick one based on the
    operation that produced the response.
    """

    @staticmethod
    def branch_name(raw: bytes) -> str:
        return _strip_prefix(coerce_utf8(raw).text, BRANCH_REF_PREFIX)

    @staticmethod
    def tag_name(raw: bytes) -> str:
        return _strip_prefix(coerce_utf8(raw).text, TAG_REF_PREFIX)

    @staticmethod
    def ref_name(raw: bytes) -> str:
        return coerce_utf8(raw).text

    @staticmethod
    def to_commit(record: FullCommitRecord) -> Commit:
        """
        Builds a full Commit from a commit record carrying the complete body.

        Args:
            record (FullCommitRecord): The commit record from the response.

        Returns:
            Commit: Domain commit whose ``message`` is the full body.
        """
        author = record.author or CommitAuthorRecord()
        committer = record.committer or CommitAuthorRecord()

        return Commit(
            id=record.id,
            subject=coerce_utf8(record.subject).text,
            message=coerce_utf8(record.body).text,
            parent_ids=tuple(record.parent_ids),
            authored_date=from_epoch(author.date),
            author_name=coerce_utf8(author.name).text,
            author_email=coerce_utf8(author.email).text,
            committed_date=from_epoch(committer.date),
            committer_name=coerce_utf8(committer.name).text,
            committer_email=coerce_utf8(committer.email).text,
        )

    @staticmethod
    def to_partial_commit(record: PartialCommitRecord) -> PartialCommit:
        """
        Builds a PartialCommit from subject-only metadata.

        The backend only sends the subject line here, so ``message`` is never
        the complete commit message.
        """
        author = record.author or CommitAuthorRecord()
        committer = record.committer or CommitAuthorRecord()

        return PartialCommit(
            id=record.id,
            message=coerce_utf8(record.subject).text,
            authored_date=from_epoch(author.date),
            author_name=coerce_utf8(author.name).text,
            author_email=coerce_utf8(author.email).text,
            committed_date=from_epoch(committer.date),
            committer_name=coerce_utf8(committer.name).text,
            committer_email=coerce_utf8(committer.email).text,
        )

    @staticmethod
    def to_branch(record: BranchRecord) -> Branch:
        return Branch(
            name=RefTranslator.branch_name(record.name),
            target_commit_id=record.target_commit.id,
            commit=RefTranslator.to_commit(record.target_commit),
        )

    @staticmethod
    def to_local_branch(record: LocalBranchRecord) -> Branch:
        return Branch(
            name=RefTranslator.branch_name(record.name),
            target_commit_id=record.commit.id,
            commit=RefTranslator.to_partial_commit(record.commit),
        )

    @staticmethod
    def to_tag(record: TagRecord) -> Tag:
        target = record.target_commit

        return Tag(
            name=RefTranslator.tag_name(record.name),
            id=record.id,
            target_commit_id=target.id if target else "",
            message=coerce_utf8(record.message).text,
            commit=RefTranslator.to_commit(target) if target else None,
        )


# ---- Stream flattening ----

async def flatten_names(
    chunks: AsyncIterable[RefNamesResponse],
    transform: Callable[[bytes], str],
) -> AsyncIterator[str]:
    """Yields every name of every chunk, in chunk order then in-chunk order."""
    async for chunk in chunks:
        for name in chunk.names:
            yield transform(name)


async def flatten_branches(
    chunks: AsyncIterable,
    decode: Callable[[Union[BranchRecord, LocalBranchRecord]], T],
) -> AsyncIterator[T]:
    """Yields decoded branches from FindAllBranches or FindLocalBranches chunks."""
    async for chunk in chunks:
        for record in chunk.branches:
            yield decode(record)


async def flatten_tags(chunks: AsyncIterable[FindAllTagsResponse]) -> AsyncIterator[Tag]:
    async for chunk in chunks:
        for record in chunk.tags:
            yield RefTranslator.to_tag(record)
