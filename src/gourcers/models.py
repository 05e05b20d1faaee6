"""Repository records shared by the selector engine and the pipeline."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class Repository(BaseModel):
    """One repository from the account's repository list.

    ``name``, ``owner``, ``full_name`` and ``is_fork`` are the fields rules
    match against. ``full_name`` is kept as GitHub reports it and is never
    re-derived from owner and name once set.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    owner: str
    full_name: str
    is_fork: bool = False
    ssh_url: str = ""
    clone_url: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Repository":
        """Build a record from a GitHub REST repository object.

        Args:
            payload: One item of ``GET /user/repos``.

        Returns:
            Repository record.
        """
        name = payload["name"]
        owner = payload["owner"]["login"]
        return cls(
            name=name,
            owner=owner,
            full_name=payload.get("full_name") or f"{owner}/{name}",
            is_fork=bool(payload.get("fork", False)),
            ssh_url=payload.get("ssh_url") or "",
            clone_url=payload.get("clone_url") or "",
        )

    @property
    def path_friendly_name(self) -> str:
        """Full name usable as a single path component."""
        return self.full_name.replace("/", "__")

    def url_for(self, protocol: str) -> str:
        """Clone URL for ``ssh`` or ``https``."""
        if protocol == "https":
            return self.clone_url or f"https://github.com/{self.full_name}.git"
        return self.ssh_url or f"git@github.com:{self.full_name}.git"
