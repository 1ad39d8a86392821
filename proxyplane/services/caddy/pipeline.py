"""
Serialized write -> regenerate -> validate -> reload pipeline.

Only one pipeline runs at a time per manager; later triggers wait on the lock
and then work from whatever is on disk at that moment. If validation rejects
the result (or regeneration fails), every file touched by the run is restored
to its previous bytes, so a config that fails validation never replaces a
valid one. Project fragment deletions are never restored.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Sequence

import aiofiles
import aiofiles.os

from .aggregator import MainConfigAggregator
from .errors import MissingImportDirective, ValidationFailed
from .models import ReloadOutcome
from .reload import ReloadOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class FileChange:
    """
    Write content to path, or delete path when content is None.

    restore=False leaves the path out of the rollback snapshot, so a removed
    project fragment stays removed even when the reload is rolled back.
    """
    path: Path
    content: Optional[str] = None
    restore: bool = True


async def _read_bytes(path: Path) -> Optional[bytes]:
    if not path.exists():
        return None
    async with aiofiles.open(path, 'rb') as f:
        return await f.read()


async def _restore(path: Path, previous: Optional[bytes]) -> None:
    if previous is None:
        if path.exists():
            await aiofiles.os.remove(path)
        return
    async with aiofiles.open(path, 'wb') as f:
        await f.write(previous)


class ReloadPipeline:
    """Owns the lock that serializes every Caddyfile regeneration + reload."""

    def __init__(self, aggregator: MainConfigAggregator, orchestrator: ReloadOrchestrator):
        self.aggregator = aggregator
        self.orchestrator = orchestrator
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run(
        self,
        changes: Sequence[FileChange] = (),
        precheck: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> ReloadOutcome:
        """
        Apply file changes, regenerate the Caddyfile and reload Caddy.

        Args:
            changes: Files to write or delete, in order
            precheck: Awaited under the lock before anything is written; raise to abort

        Raises:
            ValidationFailed / MissingImportDirective / OSError: After restoring
                every touched file (deletions marked restore=False stay deleted)
            ReloadFailed: Propagated as-is; the validated files stay on disk
        """
        if self.busy:
            logger.info("[CADDY] Reload pipeline busy, queueing")

        async with self._lock:
            if precheck is not None:
                await precheck()

            touched = [change.path for change in changes if change.restore]
            touched.append(self.aggregator.caddyfile_path)
            snapshots: Dict[Path, Optional[bytes]] = {}
            for path in touched:
                snapshots[path] = await _read_bytes(path)

            try:
                for change in changes:
                    if change.content is None:
                        if change.path.exists():
                            await aiofiles.os.remove(change.path)
                    else:
                        await aiofiles.os.makedirs(change.path.parent, exist_ok=True)
                        async with aiofiles.open(change.path, 'w', encoding='utf-8') as f:
                            await f.write(change.content)

                await self.aggregator.regenerate_top_level()
                return await self.orchestrator.apply()
            except (ValidationFailed, MissingImportDirective, OSError) as e:
                logger.error(f"[CADDY] {type(e).__name__}, restoring {len(snapshots)} file(s)")
                for path, previous in snapshots.items():
                    await _restore(path, previous)
                raise
