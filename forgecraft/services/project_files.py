"""
Project File Store
Create-or-overwrite storage for generated project files, keyed by (project_id, path).
"""

import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from forgecraft.models.project import ProjectFile

logger = logging.getLogger(__name__)


_NATIVE_UPSERT = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class ProjectFileStore:
    """Reads and writes ProjectFile rows for one database session."""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, project_id: str, path: str, content: str, commit: bool = True) -> None:
        """
        Insert the file, or overwrite its content if the path already exists.

        Uses INSERT ... ON CONFLICT DO UPDATE where the dialect has it, so two
        workers writing the same path cannot trip the unique constraint.
        """
        dialect = self.db.get_bind().dialect.name
        insert = _NATIVE_UPSERT.get(dialect)

        if insert is not None:
            stmt = insert(ProjectFile).values(
                project_id=project_id,
                path=path,
                content=content,
                is_directory=False,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[ProjectFile.project_id, ProjectFile.path],
                set_={
                    "content": stmt.excluded.content,
                    "is_directory": False,
                    "updated_at": datetime.utcnow(),
                },
            )
            self.db.execute(stmt)
        else:
            existing = (
                self.db.query(ProjectFile)
                .filter(ProjectFile.project_id == project_id, ProjectFile.path == path)
                .first()
            )
            if existing:
                existing.content = content
                existing.is_directory = False
            else:
                self.db.add(ProjectFile(project_id=project_id, path=path, content=content))
            self.db.flush()

        if commit:
            self.db.commit()

    def read_all(self, project_id: str) -> Dict[str, str]:
        """Path -> content for every non-directory file in the project."""
        rows = (
            self.db.query(ProjectFile.path, ProjectFile.content)
            .filter(ProjectFile.project_id == project_id, ProjectFile.is_directory.is_(False))
            .order_by(ProjectFile.path)
            .all()
        )
        return {path: content for path, content in rows}

    def list_files(self, project_id: str) -> List[ProjectFile]:
        """All file and directory rows, ordered by path."""
        return (
            self.db.query(ProjectFile)
            .filter(ProjectFile.project_id == project_id)
            .order_by(ProjectFile.path)
            .all()
        )
