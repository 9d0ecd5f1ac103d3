from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


class Settings(BaseModel):
    """connection settings as persisted in the config file."""
    subject: str = ""
    api_key: str = ""
    base_url: str


class ClientConfig(BaseModel):
    """immutable configuration owned by a client instance."""
    model_config = ConfigDict(frozen=True)

    base_url: str
    user_agent: str
    subject: str = ""
    api_key: str = ""

    @field_validator("base_url")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        # relative paths are resolved against the base, so it must end with a slash
        return value if value.endswith("/") else value + "/"

    @property
    def has_credentials(self) -> bool:
        return bool(self.subject)


class PackageInfo(BaseModel):
    """the package resource returned by GET /packages/:subject/:repo/:package."""
    name: Optional[str] = None
    repo: Optional[str] = None
    owner: Optional[str] = None
    desc: Optional[str] = None
    latest_version: Optional[str] = None
    versions: List[str]


class PublishResult(BaseModel):
    files: int = 0


class ReleaseReport(BaseModel):
    """outcome of a release run."""
    subject: str
    repository: str
    package: str
    version: str
    created_version: bool = False
    uploaded: List[str] = Field(default_factory=list)
    published: bool = False
