"""Pytest configuration and fixtures."""

import copy
import json

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roofdynamics import models  # noqa: F401
from roofdynamics.database import Base
from roofdynamics.dependencies import StageBuilder
from roofdynamics.services.artifact_store import LocalArtifactStore
from roofdynamics.services.llm_client import InferenceClient, InferenceConfig
from roofdynamics.services.orchestrator import Orchestrator
from roofdynamics.services.run_store import RunStore
from roofdynamics.services.stage_client import LocalStageClient

PLACEHOLDER_URL = "https://example.test/satellite.jpg"

SAMPLE_ANALYSIS = {
    "summary": {
        "address": "123 Main St, Springfield, IL",
        "overall_risk": "medium",
        "notes": "Asphalt shingles near end of service life.",
    },
    "measurements": {
        "total_area_sqft": 2450,
        "avg_pitch": "6/12",
        "ridge_length_ft": 48,
        "valley_length_ft": 22,
        "eaves_length_ft": 130,
    },
    "planes": [
        {
            "id": "plane_1",
            "area_sqft": 1225,
            "pitch": "6/12",
            "orientation_deg": 180,
            "polygon": [[0, 0], [50, 0], [50, 24.5], [0, 24.5]],
        }
    ],
    "materials": {
        "shingles_bundles": 74,
        "underlayment_sq": 25,
        "drip_edge_ft": 140,
        "flashing_ft": 60,
        "vents_count": 4,
    },
    "risks": ["Granule loss on south slope", "Lifted flashing at chimney"],
    "maintenance": ["Clean gutters twice a year", "Reseal chimney flashing"],
    "cost_breakdown": {
        "labor_usd": 8500,
        "materials_usd": 4200,
        "disposal_usd": 800,
        "contingency_usd": 1350,
        "total_usd": 14850,
    },
    "permits": {"required": True, "notes": "Re-roof permit required by the city."},
}

SAMPLE_USAGE = {"prompt_tokens": 610, "completion_tokens": 480, "total_tokens": 1090}


def completion_body(content: str, usage=None) -> dict:
    """Body of a successful chat completions response."""
    return {
        "id": "chatcmpl-test",
        "model": "gpt-4o-mini",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": usage if usage is not None else SAMPLE_USAGE,
    }


def make_inference_client(handler, api_key="sk-test") -> InferenceClient:
    """Inference client whose HTTP calls are answered by ``handler``."""
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return InferenceClient(InferenceConfig(api_key=api_key), http_client=http_client)


def analysis_handler(analysis=None, calls=None):
    """Handler answering every request with ``analysis`` as JSON content."""
    payload = copy.deepcopy(SAMPLE_ANALYSIS if analysis is None else analysis)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(json.loads(request.content))
        return httpx.Response(200, json=completion_body(json.dumps(payload)))

    return handler


@pytest.fixture(scope="function")
def session_factory():
    """Session factory over one shared in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    engine.dispose()


@pytest.fixture(scope="function")
def test_db(session_factory):
    """Create a test database session for each test."""
    db = session_factory()

    yield db

    db.close()


@pytest.fixture
def store(test_db):
    return RunStore(test_db)


@pytest.fixture
def artifact_store(tmp_path):
    return LocalArtifactStore(str(tmp_path / "artifacts"), "http://testserver/artifacts")


@pytest.fixture
def inference_client():
    return make_inference_client(analysis_handler())


@pytest.fixture
def stage_builder(inference_client, artifact_store):
    return StageBuilder(PLACEHOLDER_URL, inference_client, artifact_store)


@pytest.fixture
def orchestrator(session_factory, stage_builder):
    return Orchestrator(session_factory, LocalStageClient(session_factory, stage_builder))


@pytest.fixture
def imaged_run(store, stage_builder, test_db):
    """A run whose imagery stage has completed."""
    run = store.create("123 Main St, Springfield, IL")
    stage_builder("fetch-satellite-imagery", test_db).execute({"run_id": str(run.id)})
    return store.require(run.id)
