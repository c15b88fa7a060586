import logging
from typing import AsyncIterator, List, Optional, Union

from ref_client.domain.exceptions import (
    BackendUnavailableError,
    InvalidArgumentError,
    InvalidRefError,
    ProtocolMismatchError,
    StatusCode,
)
from ref_client.domain.models import Branch, RepositoryHandle, SortBy, Tag
from ref_client.infrastructure.acl import RefTranslator, flatten_branches, flatten_names, flatten_tags
from ref_client.infrastructure.messages import (
    CreateBranchRequest,
    CreateBranchResponse,
    CreateBranchStatus,
    DeleteBranchRequest,
    DeleteBranchResponse,
    FindAllBranchesResponse,
    FindAllTagsResponse,
    FindBranchRequest,
    FindBranchResponse,
    FindDefaultBranchNameResponse,
    FindLocalBranchesRequest,
    FindLocalBranchesResponse,
    FindRefNameRequest,
    FindRefNameResponse,
    RefExistsRequest,
    RefExistsResponse,
    RefNamesResponse,
    RepositoryRequest,
)
from ref_client.infrastructure.transport import TransportInvoker

logger = logging.getLogger(__name__)

SERVICE_NAME = "ref_service"
# Accepted for backwards compatibility with callers using the old key.
LEGACY_SORT_ALIASES = {"name_asc": "name"}


def encode_ref(value: Union[str, bytes]) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


class RefClient:
    """
    Client for the backend ref service of a single repository.

    Builds one request per operation, sends it through the transport and
    decodes the reply into domain values. Holds no state besides the
    repository handle, so a single instance may serve concurrent callers.

    Every operation accepts an optional ``timeout`` (seconds) that is handed
    to the transport unchanged. Commit messages and ref names are decoded as
    UTF-8 on a best-effort basis; see ``coerce_utf8``.
    """

    def __init__(self, transport: TransportInvoker, repository: RepositoryHandle):
        self.transport = transport
        self.repository = repository

    @property
    def storage(self) -> str:
        return self.repository.storage_name

    async def _call(self, method, request, response_type, timeout):
        logger.debug(f"{SERVICE_NAME}.{method} on storage '{self.storage}'")
        return await self.transport.unary(
            self.storage, SERVICE_NAME, method, request, response_type, timeout=timeout
        )

    def _stream(self, method, request, response_type, timeout):
        logger.debug(f"{SERVICE_NAME}.{method} (stream) on storage '{self.storage}'")
        return self.transport.stream(
            self.storage, SERVICE_NAME, method, request, response_type, timeout=timeout
        )

    def _repository_request(self) -> RepositoryRequest:
        return RepositoryRequest(repository=self.repository)

    # ---- Listings ----

    async def list_branches(self, *, timeout: Optional[float] = None) -> List[Branch]:
        """All branches with their full target commits, in backend order."""
        chunks = self._stream("find_all_branches", self._repository_request(), FindAllBranchesResponse, timeout)
        return [branch async for branch in flatten_branches(chunks, RefTranslator.to_branch)]

    async def local_branches(
        self,
        sort_by: Union[str, SortBy, None] = None,
        *,
        timeout: Optional[float] = None,
    ) -> List[Branch]:
        """
        Lists local branches with subject-only commit metadata.

        Args:
            sort_by: Sort key such as "name", "updated_asc" or "updated_desc".
                Server default ordering applies when omitted.

        Raises:
            InvalidArgumentError: If ``sort_by`` is not a known key. No request is sent.
        """
        request = FindLocalBranchesRequest(
            repository=self.repository,
            sort_by=self._sort_by_param(sort_by) if sort_by is not None else None,
        )
        chunks = self._stream("find_local_branches", request, FindLocalBranchesResponse, timeout)
        return [branch async for branch in flatten_branches(chunks, RefTranslator.to_local_branch)]

    async def tags(self, *, timeout: Optional[float] = None) -> List[Tag]:
        chunks = self._stream("find_all_tags", self._repository_request(), FindAllTagsResponse, timeout)
        return [tag async for tag in flatten_tags(chunks)]

    def iter_branch_names(self, *, timeout: Optional[float] = None) -> AsyncIterator[str]:
        """Lazily yields branch names as stream chunks arrive."""
        chunks = self._stream("find_all_branch_names", self._repository_request(), RefNamesResponse, timeout)
        return flatten_names(chunks, RefTranslator.branch_name)

    def iter_tag_names(self, *, timeout: Optional[float] = None) -> AsyncIterator[str]:
        """Lazily yields tag names as stream chunks arrive."""
        chunks = self._stream("find_all_tag_names", self._repository_request(), RefNamesResponse, timeout)
        return flatten_names(chunks, RefTranslator.tag_name)

    async def list_branch_names(self, *, timeout: Optional[float] = None) -> List[str]:
        return [name async for name in self.iter_branch_names(timeout=timeout)]

    async def list_tag_names(self, *, timeout: Optional[float] = None) -> List[str]:
        return [name async for name in self.iter_tag_names(timeout=timeout)]

    # The backend has no count call; counting materializes the full listing.
    async def count_branch_names(self, *, timeout: Optional[float] = None) -> int:
        return len(await self.list_branch_names(timeout=timeout))

    async def count_tag_names(self, *, timeout: Optional[float] = None) -> int:
        return len(await self.list_tag_names(timeout=timeout))

    # ---- Lookups ----

    async def default_branch_name(self, *, timeout: Optional[float] = None) -> str:
        response = await self._call(
            "find_default_branch_name", self._repository_request(), FindDefaultBranchNameResponse, timeout
        )
        return RefTranslator.branch_name(response.name)

    async def find_ref_name(
        self,
        commit_id: str,
        ref_prefix: Union[str, bytes],
        *,
        timeout: Optional[float] = None,
    ) -> str:
        """Name of the first ref under ``ref_prefix`` that reaches ``commit_id``, or "" if none does."""
        request = FindRefNameRequest(
            repository=self.repository,
            commit_id=commit_id,
            prefix=encode_ref(ref_prefix),
        )
        response = await self._call("find_ref_name", request, FindRefNameResponse, timeout)
        return RefTranslator.ref_name(response.name)

    async def ref_exists(self, ref_name: Union[str, bytes], *, timeout: Optional[float] = None) -> bool:
        """
        Checks whether a fully qualified ref exists.

        Raises:
            InvalidArgumentError: If the backend rejects ``ref_name`` as malformed.
        """
        request = RefExistsRequest(repository=self.repository, ref=encode_ref(ref_name))
        try:
            response = await self._call("ref_exists", request, RefExistsResponse, timeout)
        except BackendUnavailableError as e:
            if e.code is not StatusCode.INVALID_ARGUMENT:
                raise
            logger.info(f"ref_exists rejected {ref_name!r}: {e.details}")
            raise InvalidArgumentError(e.details) from e
        return response.value

    async def find_branch(
        self,
        branch_name: Union[str, bytes],
        *,
        timeout: Optional[float] = None,
    ) -> Optional[Branch]:
        """Returns the branch, or None when the backend reports no such branch."""
        request = FindBranchRequest(repository=self.repository, name=encode_ref(branch_name))
        response = await self._call("find_branch", request, FindBranchResponse, timeout)
        if response.branch is None:
            return None
        return RefTranslator.to_branch(response.branch)

    # ---- Mutations ----

    async def create_branch(
        self,
        ref_name: Union[str, bytes],
        start_point: Union[str, bytes],
        *,
        timeout: Optional[float] = None,
    ) -> Branch:
        """
        Creates ``ref_name`` pointing at ``start_point``.

        Raises:
            InvalidRefError: If the backend rejects the name or start point, or the branch exists.
            ProtocolMismatchError: If the backend answers with an unknown status.
        """
        request = CreateBranchRequest(
            repository=self.repository,
            name=encode_ref(ref_name),
            start_point=encode_ref(start_point),
        )
        response = await self._call("create_branch", request, CreateBranchResponse, timeout)

        try:
            status = CreateBranchStatus(response.status)
        except ValueError:
            logger.error(f"create_branch returned unknown status {response.status!r}")
            raise ProtocolMismatchError(f"Unknown response status: {response.status}") from None

        if status is CreateBranchStatus.OK:
            if response.branch is None:
                raise ProtocolMismatchError("create_branch reported OK without a branch")
            return RefTranslator.to_branch(response.branch)
        if status is CreateBranchStatus.ERR_INVALID:
            raise InvalidRefError("Invalid ref name")
        if status is CreateBranchStatus.ERR_EXISTS:
            raise InvalidRefError(f"Branch {self._display(ref_name)} already exists")
        raise InvalidRefError(f"Invalid reference {self._display(start_point)}")

    async def delete_branch(self, ref_name: Union[str, bytes], *, timeout: Optional[float] = None) -> None:
        """
        Deletes a branch. Success is the absence of an error.

        Deleting a branch that does not exist is not treated as success: the
        backend's error (usually NOT_FOUND or FAILED_PRECONDITION) propagates
        as BackendUnavailableError.
        """
        request = DeleteBranchRequest(repository=self.repository, name=encode_ref(ref_name))
        await self._call("delete_branch", request, DeleteBranchResponse, timeout)

    # ---- Helpers ----

    @staticmethod
    def _sort_by_param(sort_by: Union[str, SortBy]) -> SortBy:
        if isinstance(sort_by, SortBy):
            return sort_by

        key = LEGACY_SORT_ALIASES.get(sort_by, sort_by)
        try:
            return SortBy[key.upper()]
        except KeyError:
            raise InvalidArgumentError(f"Invalid sort_by key `{sort_by}`") from None

    @staticmethod
    def _display(value: Union[str, bytes]) -> str:
        return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value
