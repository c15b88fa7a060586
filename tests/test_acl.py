import unittest
from datetime import datetime, timezone

from ref_client.domain.models import Commit, PartialCommit
from ref_client.infrastructure.acl import (
    RefTranslator,
    coerce_utf8,
    flatten_branches,
    flatten_names,
    flatten_tags,
    from_epoch,
)
from ref_client.infrastructure.messages import (
    BranchRecord,
    CommitAuthorRecord,
    FindAllBranchesResponse,
    FindAllTagsResponse,
    FullCommitRecord,
    LocalBranchRecord,
    PartialCommitRecord,
    RefNamesResponse,
    TagRecord,
    TimestampRecord,
)


def _author(name: bytes, seconds: int) -> CommitAuthorRecord:
    return CommitAuthorRecord(
        name=name,
        email=name.lower() + b"@example.com",
        date=TimestampRecord(seconds=seconds),
    )


def _full_commit(commit_id: str = "a" * 40) -> FullCommitRecord:
    return FullCommitRecord(
        id=commit_id,
        subject=b"Add feature",
        body=b"Add feature\n\nLonger explanation of the change.\n",
        author=_author(b"Alice", 1700000000),
        committer=_author(b"Bob", 1700000100),
        parent_ids=["b" * 40],
    )


async def _chunks(items):
    for item in items:
        yield item


class TestCoerceUtf8(unittest.TestCase):
    def test_valid_utf8_is_not_lossy(self) -> None:
        decoded = coerce_utf8("héllo".encode("utf-8"))

        self.assertEqual(decoded.text, "héllo")
        self.assertFalse(decoded.lossy)

    def test_invalid_bytes_are_replaced_and_flagged(self) -> None:
        decoded = coerce_utf8(b"caf\xe9")

        self.assertEqual(decoded.text, "caf\ufffd")
        self.assertTrue(decoded.lossy)


class TestFromEpoch(unittest.TestCase):
    def test_converts_seconds_to_aware_utc_datetime(self) -> None:
        self.assertEqual(
            from_epoch(TimestampRecord(seconds=1700000000)),
            datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc),
        )

    def test_missing_timestamp_is_none(self) -> None:
        self.assertIsNone(from_epoch(None))


class TestRefTranslator(unittest.TestCase):
    def test_branch_name_strips_heads_prefix(self) -> None:
        self.assertEqual(RefTranslator.branch_name(b"refs/heads/feature/x"), "feature/x")
        self.assertEqual(RefTranslator.branch_name(b"main"), "main")

    def test_tag_name_strips_tags_prefix(self) -> None:
        self.assertEqual(RefTranslator.tag_name(b"refs/tags/v1.0.0"), "v1.0.0")

    def test_tag_name_leaves_heads_prefix_alone(self) -> None:
        self.assertEqual(RefTranslator.tag_name(b"refs/heads/main"), "refs/heads/main")

    def test_to_branch_embeds_full_commit(self) -> None:
        branch = RefTranslator.to_branch(
            BranchRecord(name=b"refs/heads/main", target_commit=_full_commit())
        )

        self.assertEqual(branch.name, "main")
        self.assertEqual(branch.target_commit_id, "a" * 40)
        self.assertIsInstance(branch.commit, Commit)
        self.assertEqual(branch.commit.subject, "Add feature")
        self.assertIn("Longer explanation", branch.commit.message)
        self.assertEqual(branch.commit.parent_ids, ("b" * 40,))
        self.assertEqual(branch.commit.author_email, "alice@example.com")
        self.assertEqual(
            branch.commit.committed_date,
            datetime(2023, 11, 14, 22, 15, tzinfo=timezone.utc),
        )

    def test_to_local_branch_builds_partial_commit_from_subject(self) -> None:
        record = LocalBranchRecord(
            name=b"refs/heads/topic",
            commit=PartialCommitRecord(
                id="c" * 40,
                subject=b"Fix caf\xe9 typo",
                author=_author(b"Alice", 1700000000),
                committer=_author(b"Bob", 1700000100),
            ),
        )

        branch = RefTranslator.to_local_branch(record)

        self.assertEqual(branch.name, "topic")
        self.assertEqual(branch.target_commit_id, "c" * 40)
        self.assertIsInstance(branch.commit, PartialCommit)
        self.assertEqual(branch.commit.message, "Fix caf\ufffd typo")
        self.assertEqual(branch.commit.author_name, "Alice")
        self.assertEqual(branch.commit.committer_name, "Bob")
        self.assertEqual(
            branch.commit.authored_date,
            datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc),
        )

    def test_partial_commit_without_authors_keeps_defaults(self) -> None:
        commit = RefTranslator.to_partial_commit(PartialCommitRecord(id="d" * 40))

        self.assertEqual(commit.message, "")
        self.assertIsNone(commit.authored_date)
        self.assertEqual(commit.author_name, "")

    def test_to_tag_with_annotation(self) -> None:
        tag = RefTranslator.to_tag(
            TagRecord(
                name=b"v1.0.0",
                id="e" * 40,
                target_commit=_full_commit(),
                message=b"Release 1.0.0",
            )
        )

        self.assertEqual(tag.name, "v1.0.0")
        self.assertEqual(tag.id, "e" * 40)
        self.assertEqual(tag.target_commit_id, "a" * 40)
        self.assertEqual(tag.message, "Release 1.0.0")
        self.assertEqual(tag.commit.id, "a" * 40)

    def test_to_tag_without_target_commit(self) -> None:
        tag = RefTranslator.to_tag(TagRecord(name=b"refs/tags/orphan", id="f" * 40))

        self.assertEqual(tag.name, "orphan")
        self.assertEqual(tag.target_commit_id, "")
        self.assertIsNone(tag.commit)


class TestFlatten(unittest.IsolatedAsyncioTestCase):
    async def test_flatten_names_keeps_chunk_then_in_chunk_order(self) -> None:
        chunks = [
            RefNamesResponse(names=[f"refs/heads/b{n}-{m}".encode() for m in range(4)])
            for n in range(3)
        ]

        names = [name async for name in flatten_names(_chunks(chunks), RefTranslator.branch_name)]

        self.assertEqual(len(names), 12)
        self.assertEqual(names, [f"b{n}-{m}" for n in range(3) for m in range(4)])

    async def test_flatten_names_skips_empty_chunks(self) -> None:
        chunks = [
            RefNamesResponse(names=[]),
            RefNamesResponse(names=[b"refs/tags/v1"]),
            RefNamesResponse(),
        ]

        names = [name async for name in flatten_names(_chunks(chunks), RefTranslator.tag_name)]

        self.assertEqual(names, ["v1"])

    async def test_flatten_branches_applies_decoder(self) -> None:
        chunks = [
            FindAllBranchesResponse(branches=[BranchRecord(name=b"refs/heads/a", target_commit=_full_commit())]),
            FindAllBranchesResponse(branches=[BranchRecord(name=b"refs/heads/b", target_commit=_full_commit())]),
        ]

        branches = [b async for b in flatten_branches(_chunks(chunks), RefTranslator.to_branch)]

        self.assertEqual([b.name for b in branches], ["a", "b"])

    async def test_flatten_tags(self) -> None:
        chunks = [
            FindAllTagsResponse(tags=[TagRecord(name=b"v1"), TagRecord(name=b"v2")]),
            FindAllTagsResponse(tags=[TagRecord(name=b"v3")]),
        ]

        tags = [t async for t in flatten_tags(_chunks(chunks))]

        self.assertEqual([t.name for t in tags], ["v1", "v2", "v3"])
