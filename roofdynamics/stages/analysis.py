"""Analysis stage: asks the inference API for a roof inspection document."""

import json
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from roofdynamics.exceptions import ContractViolationError
from roofdynamics.models.run import PROCESSING, STEP_AI_ANALYSIS, STEP_ANALYSIS_COMPLETE
from roofdynamics.schemas.analysis import RoofAnalysis
from roofdynamics.services.llm_client import InferenceClient
from roofdynamics.stages.base import BaseStage, StageResult

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are Roof Dynamics, a professional roof inspection assistant. "
    "Analyze the provided address and generate a comprehensive roof inspection report. "
    "Return ONLY valid JSON matching the exact schema provided. No additional text or formatting."
)


def build_user_prompt(address: str) -> str:
    # json.dumps keeps quotes in the address from breaking the template
    quoted = json.dumps(address)
    return f"""Analyze this property address for a comprehensive roof inspection report: {quoted}

Based on typical construction patterns and regional building practices, provide a detailed analysis in the following JSON format:

{{
  "summary": {{
    "address": {quoted},
    "overall_risk": "low|medium|high",
    "notes": "Professional assessment summary"
  }},
  "measurements": {{
    "total_area_sqft": 0,
    "avg_pitch": "6/12",
    "ridge_length_ft": 0,
    "valley_length_ft": 0,
    "eaves_length_ft": 0
  }},
  "planes": [
    {{
      "id": "plane_1",
      "area_sqft": 0,
      "pitch": "6/12",
      "orientation_deg": 180,
      "polygon": [[0,0], [100,0], [100,50], [0,50]]
    }}
  ],
  "materials": {{
    "shingles_bundles": 0,
    "underlayment_sq": 0,
    "drip_edge_ft": 0,
    "flashing_ft": 0,
    "vents_count": 0
  }},
  "risks": ["List of identified risks"],
  "maintenance": ["Recommended maintenance items"],
  "cost_breakdown": {{
    "labor_usd": 0,
    "materials_usd": 0,
    "disposal_usd": 0,
    "contingency_usd": 0,
    "total_usd": 0
  }},
  "permits": {{
    "required": false,
    "notes": "Permit requirements analysis"
  }}
}}

Provide realistic estimates based on standard residential construction practices."""


def build_messages(address: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(address)},
    ]


def parse_analysis(content: str) -> Dict[str, Any]:
    """Parse and shape-check the model output. The parsed dict is returned unmodified."""
    try:
        data = json.loads(content)
    except ValueError:
        logger.error(f"Failed to parse OpenAI response as JSON: {content[:200]}")
        raise ContractViolationError("OpenAI returned invalid JSON")

    if not isinstance(data, dict):
        raise ContractViolationError("OpenAI returned invalid JSON: expected an object")

    try:
        RoofAnalysis.model_validate(data)
    except ValidationError as e:
        raise ContractViolationError(
            f"OpenAI returned JSON that does not match the analysis schema ({e.error_count()} errors)"
        )

    return data


class AnalysisStage(BaseStage):
    """Stage that produces the structured roof analysis."""

    NAME = "process-openai-analysis"

    def __init__(self, db_session, inference_client: InferenceClient):
        super().__init__(db_session)
        self.llm = inference_client

    def _run(self, payload: Dict[str, Any]) -> StageResult:
        run = self.store.require(payload["run_id"])

        if self._cancel_if_requested(run):
            return StageResult.cancelled_result()

        self.store.update(run.id, status=PROCESSING, current_step=STEP_AI_ANALYSIS)

        logger.info(f"Calling OpenAI API for run {run.id}")
        completion = self.llm.chat_completion(build_messages(run.address), json_mode=True)
        analysis = parse_analysis(completion.content)

        metadata = {"token_usage": completion.usage, "model_used": completion.model}
        self.store.update(
            run.id,
            analysis=analysis,
            current_step=STEP_ANALYSIS_COMPLETE,
            run_metadata=metadata,
        )

        return StageResult(data={"analysis": analysis, "metadata": {"token_usage": completion.usage}})
