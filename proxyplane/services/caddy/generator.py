"""
Per-project Caddy fragment generation.

A fragment holds one block per custom domain plus one /app/<slug> block so
the project stays reachable by bare IP even without domains.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ...schemas import ProjectConfig, ProjectType
from ...utils.slug_generator import project_path_prefix
from ..build_detector import BuildOutputResolver, detect_build_output
from .template_loader import TemplateRenderer

logger = logging.getLogger(__name__)


class ProjectConfigGenerator:
    """Turns a ProjectConfig into the text of its site fragment."""

    def __init__(
        self,
        renderer: TemplateRenderer,
        apps_dir: str,
        default_build_dir: str = "dist",
        build_output_resolver: BuildOutputResolver = detect_build_output,
    ):
        self.renderer = renderer
        self.apps_dir = Path(apps_dir)
        self.default_build_dir = default_build_dir
        self.build_output_resolver = build_output_resolver

    def project_dir(self, project: ProjectConfig) -> Path:
        return self.apps_dir / project.id

    async def resolve_build_path(self, project: ProjectConfig) -> Optional[str]:
        """
        Directory Caddy should serve for a static project; None for proxied ones.

        serve_dir override > project root (static) > detected build output (react).
        """
        project_dir = self.project_dir(project)

        if project.serve_dir:
            return str(project_dir / project.serve_dir)
        if project.type == ProjectType.STATIC:
            return str(project_dir)
        if not project.is_static:
            return None

        build_path = await self.build_output_resolver(project_dir, project.type)
        if build_path:
            return build_path

        fallback = str(project_dir / self.default_build_dir)
        logger.warning(
            f"[CADDY] No build output found for {project.name} ({project.type}), "
            f"serving {fallback}"
        )
        return fallback

    async def generate(self, project: ProjectConfig) -> str:
        """
        Generate the fragment for one project.

        Args:
            project: Project record

        Returns:
            Fragment text: domain blocks then the path block, blank-line separated
        """
        build_path = await self.resolve_build_path(project)
        blocks: List[str] = []

        # 1. Domain-based configuration
        for domain in project.domains:
            if project.is_static:
                blocks.append(self.renderer.render("project-static-domain", {
                    "domain": domain,
                    "buildPath": build_path,
                }))
            else:
                blocks.append(self.renderer.render("project-dynamic-domain", {
                    "domain": domain,
                    "port": project.port,
                }))

        # 2. Path-based routing (always available, for IP access)
        project_path = project_path_prefix(project.name, project.id)
        if project.is_static:
            blocks.append(self.renderer.render("project-static-path", {
                "projectPath": project_path,
                "buildPath": build_path,
            }))
        else:
            blocks.append(self.renderer.render("project-dynamic-path", {
                "projectPath": project_path,
                "port": project.port,
            }))

        return "\n\n".join(block.strip() for block in blocks).strip()
