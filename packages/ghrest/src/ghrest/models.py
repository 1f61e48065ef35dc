"""GitHub API data models."""

from typing import Any

from pydantic import BaseModel, model_validator


class PullRequest(BaseModel):
    """Pull request as returned by the pulls API."""

    number: int
    url: str
    html_url: str
    state: str = "open"
    title: str
    head_ref: str
    base_ref: str

    @model_validator(mode="before")
    @classmethod
    def _flatten_refs(cls, data: Any) -> Any:
        # The API nests refs as {"head": {"ref": ...}, "base": {"ref": ...}}
        if isinstance(data, dict) and "head_ref" not in data:
            data = dict(data)
            data["head_ref"] = (data.get("head") or {}).get("ref", "")
            data["base_ref"] = (data.get("base") or {}).get("ref", "")
        return data
