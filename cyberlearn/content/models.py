"""Learning content read by the engine.

Paths, modules and lessons are owned by the content-editing side of the
platform. The engine only reads them: lessons are the completion units of a
path, and a lesson may be gated by a quiz.

Lessons are stored twice: by id for point lookups and by path so that the
aggregator reads every lesson of a path in a single query.
"""

from typing import Any
from uuid import UUID


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Learner accounts are owned by the identity side; the engine only checks
# that a learner exists
USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    email TEXT,
    created_at TIMESTAMP
)
"""

LEARNING_PATHS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.learning_paths (
    id UUID PRIMARY KEY,
    title TEXT,
    published BOOLEAN
)
"""

# Modules of a path, ordered by position
MODULES_BY_PATH_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules_by_path (
    path_id UUID,
    position INT,
    module_id UUID,
    title TEXT,
    PRIMARY KEY (path_id, position, module_id)
) WITH CLUSTERING ORDER BY (position ASC, module_id ASC)
"""

MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules (
    id UUID PRIMARY KEY,
    path_id UUID,
    position INT,
    title TEXT
)
"""

LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    path_id UUID,
    module_id UUID,
    position INT,
    title TEXT,
    published BOOLEAN,
    quiz_id UUID
)
"""

# All lessons of a path in one partition (batched read for aggregation)
LESSONS_BY_PATH_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_path (
    path_id UUID,
    module_id UUID,
    position INT,
    lesson_id UUID,
    title TEXT,
    published BOOLEAN,
    quiz_id UUID,
    PRIMARY KEY (path_id, module_id, position, lesson_id)
)
"""

CONTENT_TABLES_CQL = [
    USERS_TABLE_CQL,
    LEARNING_PATHS_TABLE_CQL,
    MODULES_BY_PATH_TABLE_CQL,
    MODULES_TABLE_CQL,
    LESSONS_TABLE_CQL,
    LESSONS_BY_PATH_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class LearningPath:
    """A learning path (top-level container of modules)."""

    def __init__(self, id: UUID, title: str = "", published: bool = True):
        self.id = id
        self.title = title
        self.published = published

    @classmethod
    def from_row(cls, row: Any) -> "LearningPath":
        """Create LearningPath instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            published=bool(row.published),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"id": self.id, "title": self.title, "published": self.published}

    def __repr__(self) -> str:
        return f"<LearningPath {self.id} {self.title!r}>"


class Module:
    """A module inside a learning path."""

    def __init__(
        self,
        id: UUID,
        path_id: UUID,
        title: str = "",
        position: int = 0,
    ):
        self.id = id
        self.path_id = path_id
        self.title = title
        self.position = position

    @classmethod
    def from_row(cls, row: Any) -> "Module":
        """Create Module instance from a ``modules`` row."""
        return cls(
            id=row.id,
            path_id=row.path_id,
            title=row.title or "",
            position=row.position or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "path_id": self.path_id,
            "title": self.title,
            "position": self.position,
        }

    def __repr__(self) -> str:
        return f"<Module {self.id} path={self.path_id}>"


class Lesson:
    """A lesson: the completion unit of a learning path.

    Attributes:
        id: Lesson UUID
        module_id: Owning module
        path_id: Owning learning path (denormalized from the module)
        title: Lesson title
        position: Order inside the module
        published: Unpublished lessons are not completion units
        quiz_id: Quiz gating completion of this lesson, if any
    """

    def __init__(
        self,
        id: UUID,
        module_id: UUID,
        path_id: UUID,
        title: str = "",
        position: int = 0,
        published: bool = True,
        quiz_id: UUID | None = None,
    ):
        self.id = id
        self.module_id = module_id
        self.path_id = path_id
        self.title = title
        self.position = position
        self.published = published
        self.quiz_id = quiz_id

    @property
    def is_quiz_gated(self) -> bool:
        """Lesson completes only through a passing quiz submission."""
        return self.quiz_id is not None

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from a ``lessons`` row."""
        return cls(
            id=row.id,
            module_id=row.module_id,
            path_id=row.path_id,
            title=row.title or "",
            position=row.position or 0,
            published=bool(row.published),
            quiz_id=row.quiz_id,
        )

    @classmethod
    def from_path_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from a ``lessons_by_path`` row."""
        return cls(
            id=row.lesson_id,
            module_id=row.module_id,
            path_id=row.path_id,
            title=row.title or "",
            position=row.position or 0,
            published=bool(row.published),
            quiz_id=row.quiz_id,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "module_id": self.module_id,
            "path_id": self.path_id,
            "title": self.title,
            "position": self.position,
            "published": self.published,
            "quiz_id": self.quiz_id,
        }

    def __repr__(self) -> str:
        return f"<Lesson {self.id} module={self.module_id}>"
