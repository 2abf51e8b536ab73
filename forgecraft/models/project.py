"""
Project Models
Database models for generated projects and their file trees.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from forgecraft.core.database import Base


class Platform:
    """Target code ecosystems."""
    MINECRAFT_PAPER = "MINECRAFT_PAPER"
    MINECRAFT_SPIGOT = "MINECRAFT_SPIGOT"
    MINECRAFT_FABRIC = "MINECRAFT_FABRIC"
    MINECRAFT_FORGE = "MINECRAFT_FORGE"
    DISCORD_NODE = "DISCORD_NODE"
    DISCORD_PYTHON = "DISCORD_PYTHON"


class Project(Base):
    """A user's plugin / bot project."""

    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: f"proj_{uuid.uuid4().hex[:12]}")
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # Generation settings
    platform = Column(String, nullable=False, default=Platform.MINECRAFT_PAPER)
    language = Column(String, nullable=False, default="JAVA")
    api_version = Column(String, nullable=True)  # e.g. "1.20"
    package_name = Column(String, nullable=True)  # e.g. "com.example.myplugin"
    command_prefix = Column(String, nullable=True)  # Discord bots only

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="projects")
    files = relationship("ProjectFile", back_populates="project", cascade="all, delete-orphan")
    jobs = relationship("GenerationJob", back_populates="project", cascade="all, delete-orphan")


class ProjectFile(Base):
    """
    One entry of a project's file tree.

    Paths are unique within a project. Directories are stored as entries
    with is_directory=True and empty content.
    """

    __tablename__ = "project_files"
    __table_args__ = (
        UniqueConstraint("project_id", "path", name="uq_project_files_project_path"),
    )

    id = Column(String, primary_key=True, default=lambda: f"file_{uuid.uuid4().hex[:12]}")
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    path = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    is_directory = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project = relationship("Project", back_populates="files")
