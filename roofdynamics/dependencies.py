"""Builds stages, clients and the dispatcher from settings.

Stages get their configuration here, at construction time; they never read
``settings`` themselves.
"""

from typing import Callable

from sqlalchemy.orm import Session

from roofdynamics.config import Settings, settings
from roofdynamics.database import SessionLocal
from roofdynamics.services.artifact_store import ArtifactStore, LocalArtifactStore, SupabaseArtifactStore
from roofdynamics.services.dispatch import PipelineDispatcher
from roofdynamics.services.llm_client import InferenceClient, InferenceConfig
from roofdynamics.services.orchestrator import Orchestrator
from roofdynamics.services.stage_client import (
    ANALYSIS,
    IMAGERY,
    REPORT,
    HttpStageClient,
    LocalStageClient,
    StageClient,
)
from roofdynamics.stages import AnalysisStage, BaseStage, ImageryStage, ReportStage


def build_inference_client(config: Settings = settings) -> InferenceClient:
    return InferenceClient(
        InferenceConfig(
            api_key=config.OPENAI_API_KEY,
            base_url=config.OPENAI_BASE_URL,
            model=config.OPENAI_MODEL,
            temperature=config.OPENAI_TEMPERATURE,
            max_tokens=config.OPENAI_MAX_TOKENS,
            timeout=config.OPENAI_TIMEOUT,
        )
    )


def build_artifact_store(config: Settings = settings) -> ArtifactStore:
    if config.ARTIFACT_BACKEND == "supabase":
        return SupabaseArtifactStore(
            config.SUPABASE_URL,
            config.SUPABASE_SERVICE_ROLE_KEY,
            bucket=config.ARTIFACT_BUCKET,
        )
    if config.ARTIFACT_BACKEND == "local":
        return LocalArtifactStore(config.ARTIFACT_DIR, config.ARTIFACT_BASE_URL)
    raise ValueError(f"Unknown artifact backend: {config.ARTIFACT_BACKEND}")


class StageBuilder:
    """Creates a stage by its function name, bound to a database session."""

    def __init__(self, placeholder_url: str, inference_client: InferenceClient, artifact_store: ArtifactStore):
        self.placeholder_url = placeholder_url
        self.inference_client = inference_client
        self.artifact_store = artifact_store

    def __call__(self, name: str, db: Session) -> BaseStage:
        if name == IMAGERY:
            return ImageryStage(db, self.placeholder_url)
        if name == ANALYSIS:
            return AnalysisStage(db, self.inference_client)
        if name == REPORT:
            return ReportStage(db, self.artifact_store)
        raise ValueError(f"Unknown stage: {name}")


def build_stage_builder(config: Settings = settings) -> StageBuilder:
    return StageBuilder(
        config.IMAGERY_PLACEHOLDER_URL,
        build_inference_client(config),
        build_artifact_store(config),
    )


def build_stage_client(
    config: Settings = settings,
    session_factory: Callable[[], Session] = SessionLocal,
) -> StageClient:
    if config.STAGE_TRANSPORT == "http":
        return HttpStageClient(config.FUNCTIONS_BASE_URL)
    if config.STAGE_TRANSPORT == "local":
        return LocalStageClient(session_factory, build_stage_builder(config))
    raise ValueError(f"Unknown stage transport: {config.STAGE_TRANSPORT}")


def build_orchestrator(
    config: Settings = settings,
    session_factory: Callable[[], Session] = SessionLocal,
) -> Orchestrator:
    return Orchestrator(session_factory, build_stage_client(config, session_factory))


def build_dispatcher(
    config: Settings = settings,
    session_factory: Callable[[], Session] = SessionLocal,
) -> PipelineDispatcher:
    orchestrator = build_orchestrator(config, session_factory)
    return PipelineDispatcher(config.PIPELINE_DISPATCH, session_factory, orchestrator.run)


# FastAPI dependencies (overridden in tests)

def get_stage_builder() -> StageBuilder:
    return build_stage_builder()


def get_orchestrator() -> Orchestrator:
    return build_orchestrator()


def get_dispatcher() -> PipelineDispatcher:
    return build_dispatcher()
