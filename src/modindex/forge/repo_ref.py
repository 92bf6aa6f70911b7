from dataclasses import dataclass


@dataclass(frozen=True)
class RepoRef:
    org: str
    name: str

    @classmethod
    def parse(cls, repo_id: str) -> "RepoRef":
        """Split an `org/name` repo id.

        Raises:
            ValueError: `repo_id` does not have exactly two non-empty parts.
        """
        parts = repo_id.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(
                f"expected org/name format, but got {len(parts)} parts from {repo_id!r}"
            )
        return cls(org=parts[0], name=parts[1])

    @property
    def full_name(self) -> str:
        return f"{self.org}/{self.name}"

    def as_module_path(self, host_name: str) -> str:
        return f"{host_name}/{self.org}/{self.name}"
