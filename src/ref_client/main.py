import asyncio
import sys
import logging
import aiohttp

from ref_client.application.ref_service import RefClient
from ref_client.config import load_settings
from ref_client.domain.exceptions import ConfigurationError, RefClientException
from ref_client.domain.models import RepositoryHandle
from ref_client.infrastructure.transport import HttpTransport

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

async def main():
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level)

    if not settings.repo_relative_path:
        logger.error("REPO_RELATIVE_PATH is not set in the environment.")
        sys.exit(1)

    repository = RepositoryHandle(
        storage_name=settings.repo_storage,
        relative_path=settings.repo_relative_path,
    )

    async with aiohttp.ClientSession() as session:
        transport = HttpTransport(
            session,
            settings.storage_addresses,
            token=settings.token,
            default_timeout=settings.timeout,
        )
        client = RefClient(transport, repository)

        try:
            default_branch = await client.default_branch_name()
            branches = await client.local_branches(sort_by="updated_desc")
            tag_count = await client.count_tag_names()
        except RefClientException as e:
            logger.error(f"Failed to read refs of {repository.relative_path}: {e}")
            sys.exit(1)

    logger.info(
        f"{repository.relative_path}: default branch '{default_branch}', "
        f"{len(branches)} branches, {tag_count} tags."
    )
    for branch in branches:
        logger.info(f"{branch.name:<40} {branch.target_commit_id[:12]} {branch.commit.message}")

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
