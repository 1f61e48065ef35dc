"""Connection settings for a synchronized repository."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import quote, urlsplit, urlunsplit

from ghrest import get_token
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_BASE_DIR = Path(".repos")

# Characters GitHub allows in owner and repository names
NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

# field name -> environment variable
ENV_VARS = {
    "owner": "GITHUB_OWNER",
    "repo": "GITHUB_REPO",
    "branch": "GITHUB_BRANCH",
    "path": "GITHUB_PATH",
    "token": "GITHUB_API_TOKEN",
    "base_dir": "REPOSYNC_BASE_DIR",
    "remote_base_url": "REPOSYNC_REMOTE_BASE_URL",
    "api_base_url": "GITHUB_API_URL",
}


class SyncConfig(BaseModel):
    """Validated, immutable parameters of one mirrored repository."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    branch: str = Field(min_length=1)
    path: str = ""
    token: SecretStr
    base_dir: Path = DEFAULT_BASE_DIR
    remote_base_url: str = "https://github.com"
    api_base_url: str = "https://api.github.com"
    author_name: str = "reposync"
    author_email: str = "reposync@users.noreply.github.com"

    @field_validator("owner", "repo")
    @classmethod
    def _check_name(cls, value: str) -> str:
        # Both end up as directory names under base_dir
        if value in (".", "..") or not NAME_PATTERN.match(value):
            raise ValueError(f"Invalid GitHub name: {value!r}")
        return value

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        return value.replace("\\", "/").strip("/")

    @field_validator("token")
    @classmethod
    def _require_token(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("GitHub API token is required")
        return value

    @field_validator("remote_base_url", "api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        use_gh_cli: bool = False,
        **overrides: Any,
    ) -> "SyncConfig":
        """
        Build a config from environment variables.

        Args:
            env: Mapping to read from. Defaults to os.environ, which also
                enables the GH_TOKEN / GITHUB_TOKEN token fallback.
            use_gh_cli: When reading os.environ, fall back to `gh auth token`
                if no token is set
            **overrides: Field values that take precedence over the environment

        Returns:
            Validated SyncConfig

        Raises:
            ConfigError: if a required value is missing or invalid
        """
        source = os.environ if env is None else env
        values: dict[str, Any] = {}
        for field, var in ENV_VARS.items():
            if source.get(var) is not None:
                values[field] = source[var]
        values.update({k: v for k, v in overrides.items() if v is not None})
        if not values.get("token") and env is None:
            token = get_token(use_gh_cli=use_gh_cli)
            if token:
                values["token"] = token
        return cls.validated(**values)

    @classmethod
    def validated(cls, **values: Any) -> "SyncConfig":
        """Construct a config, turning validation errors into ConfigError."""
        try:
            config = cls(**values)
        except ValidationError as e:
            messages = []
            for err in e.errors():
                field = str(err["loc"][0]) if err["loc"] else ""
                messages.append(f"{ENV_VARS.get(field, field)}: {err['msg']}")
            raise ConfigError(
                "GitHub configuration validation failed:\n" + "\n".join(messages)
            ) from e
        logger.debug(
            "Config loaded: %s/%s branch=%s path=%s",
            config.owner, config.repo, config.branch, config.path or "/",
        )
        return config

    @property
    def mirror_path(self) -> Path:
        return self.base_dir / self.owner / self.repo

    @property
    def remote_url(self) -> str:
        return f"{self.remote_base_url}/{self.owner}/{self.repo}.git"

    @property
    def authenticated_remote_url(self) -> str:
        """Remote URL carrying the token; only http(s) remotes are rewritten."""
        parts = urlsplit(self.remote_url)
        if parts.scheme not in ("http", "https"):
            return self.remote_url
        secret = quote(self.token.get_secret_value(), safe="")
        netloc = f"x-access-token:{secret}@{parts.hostname}"
        if parts.port:
            netloc += f":{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
