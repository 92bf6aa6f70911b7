from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from modindex.database.tables.base_class import Base
from modindex.database.tables.repo_indexing_table import NEGATIVE_INFINITY


class Repos(Base):
    """All discovered repos, and when to re-index their tags next."""

    __tablename__ = "repos"

    # Something like "corp/my-repo"
    org_repo_name: Mapped[str] = mapped_column(String(200), primary_key=True)
    indexing_began: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=NEGATIVE_INFINITY
    )
    indexing_finished: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=NEGATIVE_INFINITY,
        index=True,
    )
