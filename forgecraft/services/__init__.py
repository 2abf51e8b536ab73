# Services package - generation pipeline and its collaborators
from forgecraft.services.pricing import (
    AI_MODELS,
    GENERATION_COSTS,
    UnknownModelError,
    compute_generation_cost,
    get_model_config,
    provider_for_model,
)
from forgecraft.services.token_ledger import (
    InsufficientBalanceError,
    TokenLedgerService,
    UserNotFoundError,
)
from forgecraft.services.docs_search import DocSearchResult, DocumentationService
from forgecraft.services.prompt_builder import GenerationContext, PromptOptions, build_prompt
from forgecraft.services.model_gateway import (
    GeneratedOutput,
    InvalidCredentialError,
    MalformedResponseError,
    ModelGatewayError,
    ModelGatewayService,
    RateLimitedError,
    ServiceUnavailableError,
    UpstreamError,
)
from forgecraft.services.project_files import ProjectFileStore
from forgecraft.services.generation import (
    ForbiddenError,
    GenerationOrchestrator,
    JobNotFoundError,
    JobStateConflictError,
    ProjectNotFoundError,
    QueueUnavailableError,
)

__all__ = [
    # Pricing
    "AI_MODELS",
    "GENERATION_COSTS",
    "UnknownModelError",
    "compute_generation_cost",
    "get_model_config",
    "provider_for_model",
    # Ledger
    "InsufficientBalanceError",
    "TokenLedgerService",
    "UserNotFoundError",
    # Docs
    "DocSearchResult",
    "DocumentationService",
    # Prompts
    "GenerationContext",
    "PromptOptions",
    "build_prompt",
    # Model gateway
    "GeneratedOutput",
    "InvalidCredentialError",
    "MalformedResponseError",
    "ModelGatewayError",
    "ModelGatewayService",
    "RateLimitedError",
    "ServiceUnavailableError",
    "UpstreamError",
    # Files
    "ProjectFileStore",
    # Orchestrator
    "ForbiddenError",
    "GenerationOrchestrator",
    "JobNotFoundError",
    "JobStateConflictError",
    "ProjectNotFoundError",
    "QueueUnavailableError",
]
