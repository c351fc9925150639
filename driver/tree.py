"""Maintains a directory tree on top of the flat (dirname, basename) keyed files table."""

from typing import List, Optional, Tuple

from common.logging_config import get_logger
from driver.context import RequestContext, check_context
from driver.exceptions import PathNotFoundError
from driver.paths import clean_path, location_prefix, split_path
from driver.repositories.file_repository import FileRecord, FileRepository
from objectstore.base import ObjectStore
from objectstore.exceptions import ObjectNotFoundError

logger = get_logger(__name__)


class DirectoryTree:
    """
    Tree operations over the files table. The table is the only source of
    truth; nothing about the tree is cached in memory.
    """

    def __init__(self, file_repo: FileRepository, object_store: ObjectStore):
        self.file_repo = file_repo
        self.object_store = object_store

    def ensure_ancestors(self, full_path: str, ctx: Optional[RequestContext] = None) -> None:
        """
        Insert a directory marker for every ancestor of full_path below the
        root. Existing rows are left untouched.

        Args:
            full_path: Path of the node whose parents must exist
            ctx: Optional request context
        """
        directory, _ = split_path(full_path)
        while directory != "/":
            check_context(ctx)
            dirname, basename = split_path(directory)
            if self.file_repo.insert_directory(dirname, basename):
                logger.debug(f"Created directory marker {directory}")
            directory = dirname

    def list_children(self, full_path: str, ctx: Optional[RequestContext] = None) -> List[str]:
        """
        Base names of the rows directly below full_path. Unknown paths and
        empty directories both give an empty list.
        """
        check_context(ctx)
        return self.file_repo.list_basenames(clean_path(full_path))

    def delete_blobs(self, record: FileRecord, ctx: Optional[RequestContext] = None) -> None:
        """
        Remove the content object and all segment objects of an externally
        stored file. Segment rows are kept.
        """
        if not record.is_external:
            return
        check_context(ctx)
        try:
            self.object_store.delete_all(location_prefix(self.object_store.object_prefix, record.location))
        except ObjectNotFoundError:
            raise PathNotFoundError(record.path)

    def delete_subtree(self, record: FileRecord, ctx: Optional[RequestContext] = None) -> int:
        """
        Delete a file, or a directory with everything below it. Children are
        fully removed before their parent row; directories are expanded with
        one query per level using an explicit stack.

        Returns:
            Number of rows deleted
        """
        stack: List[Tuple[FileRecord, bool]] = [(record, False)]
        deleted = 0

        while stack:
            current, expanded = stack.pop()

            if not expanded:
                self.delete_blobs(current, ctx)
                if current.is_dir:
                    check_context(ctx)
                    children = self.file_repo.list_children(current.path)
                    stack.append((current, True))
                    stack.extend((child, False) for child in reversed(children))
                    continue

            check_context(ctx)
            self.file_repo.delete(current.dirname, current.basename)
            deleted += 1

        logger.info(f"Deleted {deleted} rows below and including {record.path}")
        return deleted

    def rename(self, record: FileRecord, new_path: str, ctx: Optional[RequestContext] = None) -> None:
        """
        Re-key a single row. For a directory only its own row moves; rows
        below it keep dirnames under the old path.
        """
        check_context(ctx)
        self.file_repo.rename(record, clean_path(new_path))
