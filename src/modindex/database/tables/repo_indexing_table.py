from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, text
from sqlalchemy.orm import Mapped, mapped_column

from modindex.database.tables.base_class import Base

NEGATIVE_INFINITY = text("'-infinity'::timestamptz")


class RepoIndexing(Base):
    """Singleton lease row for re-indexing the list of all repos.

    Workers should re-index the list of all repos when:
        now > indexing_finished + reindex period, and
        now > indexing_began + indexing ttl
    """

    __tablename__ = "repo_indexing"
    __table_args__ = (CheckConstraint("id", name="singleton"),)

    # Only the value "true" is allowed, which limits the table to one row
    id: Mapped[bool] = mapped_column(Boolean, primary_key=True, server_default=text("true"))
    indexing_began: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=NEGATIVE_INFINITY
    )
    indexing_finished: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=NEGATIVE_INFINITY
    )
