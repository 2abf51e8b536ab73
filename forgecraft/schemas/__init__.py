# Pydantic schemas package
from forgecraft.schemas.generate import GenerateRequest, GenerateResponse, GenerateContext, ModelKey
from forgecraft.schemas.job import JobStatus, DocUsageResponse, GenerationJobResponse, GenerationJobSummary
from forgecraft.schemas.tokens import TokenBalanceResponse, TokenTransactionResponse, TokenHistoryResponse
from forgecraft.schemas.files import ProjectFileResponse, ProjectFileListResponse

__all__ = [
    "GenerateRequest", "GenerateResponse", "GenerateContext", "ModelKey",
    "JobStatus", "DocUsageResponse", "GenerationJobResponse", "GenerationJobSummary",
    "TokenBalanceResponse", "TokenTransactionResponse", "TokenHistoryResponse",
    "ProjectFileResponse", "ProjectFileListResponse",
]
