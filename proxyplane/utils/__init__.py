"""Utility modules for the proxyplane service."""

from .async_subprocess import SubprocessResult, ProcessRunner, run_async, privileged
from .slug_generator import slugify, project_path_slug, project_path_prefix

__all__ = [
    'SubprocessResult',
    'ProcessRunner',
    'run_async',
    'privileged',
    'slugify',
    'project_path_slug',
    'project_path_prefix',
]
