"""Category tree maintenance from ``_meta.json`` descriptors."""

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.postgres_database import savepoint
from packages.docshub.dtos.sync import MetadataSyncResult, SourceFile
from packages.docshub.parsing.metadata_parser import category_prefixes, parse_meta_file

logger = logging.getLogger(__name__)


class CategoryMetadataService:
    def __init__(self, categories: Any, session: AsyncSession | None = None):
        self.categories = categories
        self.session = session

    async def store_metadata(
        self,
        repository_id: str,
        meta_files: list[SourceFile],
    ) -> MetadataSyncResult:
        """Upsert every category declared by the fetched descriptors.

        A descriptor that fails to parse is skipped entirely and is not
        counted as parsed, so its existing categories are left alone.
        """
        result = MetadataSyncResult()
        logger.info(f"Processing {len(meta_files)} _meta.json file(s)")

        for meta_file in meta_files:
            try:
                nodes = parse_meta_file(meta_file.path, meta_file.content)
                async with savepoint(self.session):
                    for node in nodes:
                        if await self.categories.upsert(repository_id, node):
                            result.created += 1
                        else:
                            result.updated += 1
            except Exception as e:
                message = f"Failed to process {meta_file.path}: {e}"
                logger.error(message)
                result.errors.append(message)
                continue

            result.parsed_meta_paths.add(meta_file.path)
            result.processed_slugs.update(node.slug for node in nodes)
            logger.debug(f"Processed {len(nodes)} categories from {meta_file.path}")

        return result

    async def cleanup_categories(
        self,
        repository_id: str,
        metadata: MetadataSyncResult,
        content_slugs: Iterable[str],
    ) -> list[str]:
        """Delete categories that were removed or no longer hold content.

        Runs once per sync after every phase. A category is deleted when its
        descriptor was parsed this run but no longer declares it, or when no
        surviving document slug falls under it.

        Returns:
            Slugs of the deleted categories
        """
        prefixes = category_prefixes(content_slugs)
        to_delete = []
        for category in await self.categories.list_for_repository(repository_id):
            slug = category.category_slug
            removed = category.source_meta_path in metadata.parsed_meta_paths and slug not in metadata.processed_slugs
            if removed or slug not in prefixes:
                to_delete.append(slug)

        if to_delete:
            await self.categories.delete_by_slugs(repository_id, to_delete)
            logger.info(f"Deleted {len(to_delete)} orphaned categories: {', '.join(sorted(to_delete))}")
        return to_delete
