"""
Slug utilities for path-based project routing.

Every deployed project is reachable by bare IP under /app/<slug>:
- "My App_v2" -> "my-app-v2"
- "Hello   World!!" -> "hello-world"
"""

import re

_NON_ALNUM_RUN = re.compile(r'[^a-z0-9]+')


def slugify(text: str, fallback: str = 'project') -> str:
    """
    Convert text to a URL-safe slug.

    Lower-cases the text and collapses every run of non-alphanumeric
    characters into a single hyphen. Leading/trailing hyphens are removed.

    Args:
        text: Input text to slugify
        fallback: Returned when nothing alphanumeric is left

    Returns:
        Slug matching ^[a-z0-9]+(-[a-z0-9]+)*$
    """
    slug = _NON_ALNUM_RUN.sub('-', text.lower()).strip('-')
    return slug or fallback


def project_path_slug(name: str, project_id: str) -> str:
    """Slug for /app/<slug>; falls back to the project id for names like "!!!"."""
    return slugify(name, fallback=slugify(project_id))


def project_path_prefix(name: str, project_id: str) -> str:
    return f"/app/{project_path_slug(name, project_id)}"
