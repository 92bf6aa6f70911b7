from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class RepoTag:
    """A tag of a repo, as stored in the catalog."""

    repo_id: str
    tag_name: str
    module_path: str
    # None when the forge reported no usable date for the tag
    created: Optional[datetime]
