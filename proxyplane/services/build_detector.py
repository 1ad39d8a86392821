"""
Build Output Detection

Locates the compiled output directory of a deployed project so the proxy can
serve it directly. The project registry may plug in its own resolver; this is
the default used by the Caddy config generator.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Union

from ..schemas import ProjectType

logger = logging.getLogger(__name__)

# (project_dir, project_type) -> absolute build output path, or None
BuildOutputResolver = Callable[[Union[str, Path], ProjectType], Awaitable[Optional[str]]]

# Candidate output directories per project type, checked in order
BUILD_OUTPUTS: Dict[ProjectType, List[str]] = {
    ProjectType.REACT: ["dist", "build"],
    ProjectType.NEXT: ["out", ".next"],  # static export first
    ProjectType.NODE: ["dist", "build", "lib"],
    ProjectType.STATIC: [],
}


def _first_populated_dir(project_dir: Path, candidates: List[str]) -> Optional[Path]:
    for output in candidates:
        full_path = project_dir / output
        try:
            if full_path.is_dir() and any(full_path.iterdir()):
                return full_path
        except OSError as e:
            logger.warning(f"[BUILD] Error checking build output {full_path}: {e}")
    return None


async def detect_build_output(
    project_dir: Union[str, Path],
    project_type: ProjectType
) -> Optional[str]:
    """
    Find the first non-empty build output directory for a project.

    Args:
        project_dir: Project root directory
        project_type: Declared project type

    Returns:
        Absolute path of the build output, or None if nothing was built
    """
    candidates = BUILD_OUTPUTS.get(ProjectType(project_type), [])
    found = await asyncio.to_thread(_first_populated_dir, Path(project_dir), candidates)
    if found is None:
        return None

    logger.info(f"[BUILD] Build output detected: {found}")
    return str(found)
