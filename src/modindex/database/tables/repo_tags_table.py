from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from modindex.database.tables.base_class import Base
from modindex.database.tables.repos_table import Repos


class RepoTags(Base):
    """Tags for all repos. Per repo, always the result of the latest crawl."""

    __tablename__ = "repo_tags"

    org_repo_name: Mapped[str] = mapped_column(
        String(200), ForeignKey(Repos.org_repo_name), primary_key=True
    )
    # The tag name, ex "v0.3.0"
    tag_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    module_path: Mapped[str] = mapped_column(Text, nullable=False)
    # NULL when the forge reported neither a commit nor a tagger date
    created: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
