"""Per-framework error cache persisted inside the sandbox.

One JSON document per framework id lives at ``<cache_dir>/<id>-errors.json``.
Every write overwrites the whole document; nothing is appended on disk.
"""

from pydantic import ValidationError
import structlog

from models.schemas import ErrorCache, FrameworkId
from sandbox.base import CommandResult
from sandbox.capabilities import SandboxCapabilities

logger = structlog.get_logger(__name__)


class ErrorCacheStore:
    """Reads and writes error cache documents through sandbox capabilities.

    Attributes:
        capabilities: Sandbox capability adapter used for file access.
        cache_dir: Directory inside the sandbox holding the cache files.
        max_errors: Errors kept per document; older entries are dropped on write.
    """

    def __init__(
        self,
        capabilities: SandboxCapabilities,
        cache_dir: str = "/tmp",
        max_errors: int = 20,
    ) -> None:
        self.capabilities = capabilities
        self.cache_dir = cache_dir
        self.max_errors = max_errors

    def path_for(self, framework_id: str | FrameworkId) -> str:
        return f"{self.cache_dir}/{framework_id}-errors.json"

    async def read(self, framework_id: str | FrameworkId) -> ErrorCache | None:
        """Return the cached document, or None if absent or unreadable."""
        path = self.path_for(framework_id)
        data = await self.capabilities.read_json(path)
        if not isinstance(data, dict):
            return None

        data.setdefault("framework", str(framework_id))
        try:
            return ErrorCache.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "error_cache_invalid",
                path=path,
                error_count=e.error_count(),
            )
            return None

    async def write(self, cache: ErrorCache) -> bool:
        """Overwrite the framework's document, keeping the newest errors.

        Returns:
            True if the sandbox accepted the write.
        """
        if len(cache.errors) > self.max_errors:
            cache = cache.model_copy(update={"errors": cache.errors[-self.max_errors :]})

        path = self.path_for(cache.framework)
        written = await self.capabilities.write_text(path, cache.to_json())
        if not written:
            logger.warning("error_cache_write_failed", path=path)
        else:
            logger.debug(
                "error_cache_written",
                path=path,
                errors=len(cache.errors),
                warnings=len(cache.warnings),
            )
        return written

    async def delete(self, framework_id: str | FrameworkId) -> CommandResult:
        """Remove the framework's document (a missing file is not an error)."""
        return await self.capabilities.remove(self.path_for(framework_id))

    async def reset(
        self, framework_id: str | FrameworkId, *, cleared: bool = False
    ) -> bool:
        """Replace the framework's document with an empty one."""
        return await self.write(ErrorCache(framework=str(framework_id), cleared=cleared))
