# Database models package
from forgecraft.models.user import User
from forgecraft.models.project import Project, ProjectFile, Platform
from forgecraft.models.job import GenerationJob, GenerationJobStatus
from forgecraft.models.doc import DocEntry, DocUsage
from forgecraft.models.token_transaction import TokenTransaction, TransactionType

__all__ = [
    "User",
    "Project",
    "ProjectFile",
    "Platform",
    "GenerationJob",
    "GenerationJobStatus",
    "DocEntry",
    "DocUsage",
    "TokenTransaction",
    "TransactionType",
]
