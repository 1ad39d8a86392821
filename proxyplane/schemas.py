from enum import Enum
from pydantic import BaseModel, Field, StrictBool, field_validator
from typing import Optional, List


class ProjectType(str, Enum):
    """
    Runtime type of a deployed project.

    Attributes:
        REACT: Browser bundle (Vite/CRA) served as static files from its build output
        NEXT: Server-rendered app running under the process supervisor
        NODE: Custom Node server running under the process supervisor
        STATIC: Plain static files served from the project root
    """

    REACT = "react"
    NEXT = "next"
    NODE = "node"
    STATIC = "static"

    @property
    def is_static(self) -> bool:
        return self in (ProjectType.REACT, ProjectType.STATIC)

    def __str__(self) -> str:
        return self.value


class ProjectConfig(BaseModel):
    """Project record as read from the project registry."""
    id: str
    name: str
    type: ProjectType
    port: int
    domains: List[str] = Field(default_factory=list)
    serve_dir: Optional[str] = Field(None, alias="serveDir")

    @field_validator('domains', mode='before')
    @classmethod
    def none_means_no_domains(cls, v):
        return v or []

    @property
    def is_static(self) -> bool:
        """Served from disk (static type or explicit serve directory)."""
        return self.type.is_static or bool(self.serve_dir)

    class Config:
        frozen = True
        populate_by_name = True


class CaddyStatus(BaseModel):
    installed: bool
    running: bool


class ProxySettingsRead(BaseModel):
    disableAutoHttps: bool


class ProxySettingsUpdate(BaseModel):
    disableAutoHttps: StrictBool


class ProxyStatusRead(BaseModel):
    installed: bool
    running: bool
    securityMode: str
