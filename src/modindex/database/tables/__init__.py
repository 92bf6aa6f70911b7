from modindex.database.tables.base_class import Base
from modindex.database.tables.repo_indexing_table import RepoIndexing
from modindex.database.tables.repo_tags_table import RepoTags
from modindex.database.tables.repos_table import Repos

__all__ = ["Base", "RepoIndexing", "RepoTags", "Repos"]
