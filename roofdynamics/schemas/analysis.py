"""Shape of the roof analysis document returned by the inference API."""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt

# Numeric strings are rejected; the report renders only real numbers
Number = Union[StrictInt, StrictFloat]


class _Section(BaseModel):
    # Unknown keys are kept; the stored payload is the raw response anyway
    model_config = ConfigDict(extra="allow")


class AnalysisSummary(_Section):
    address: Optional[str] = None
    overall_risk: Optional[str] = None  # 'low', 'medium', 'high'
    notes: Optional[str] = None


class Measurements(_Section):
    total_area_sqft: Optional[Number] = None
    avg_pitch: Optional[str] = None
    ridge_length_ft: Optional[Number] = None
    valley_length_ft: Optional[Number] = None
    eaves_length_ft: Optional[Number] = None


class RoofPlane(_Section):
    id: Optional[str] = None
    area_sqft: Optional[Number] = None
    pitch: Optional[str] = None
    orientation_deg: Optional[Number] = None
    polygon: Optional[List[List[Number]]] = None


class Materials(_Section):
    shingles_bundles: Optional[Number] = None
    underlayment_sq: Optional[Number] = None
    drip_edge_ft: Optional[Number] = None
    flashing_ft: Optional[Number] = None
    vents_count: Optional[Number] = None


class CostBreakdown(_Section):
    labor_usd: Optional[Number] = None
    materials_usd: Optional[Number] = None
    disposal_usd: Optional[Number] = None
    contingency_usd: Optional[Number] = None
    total_usd: Optional[Number] = None


class Permits(_Section):
    required: Optional[bool] = None
    notes: Optional[str] = None


class RoofAnalysis(_Section):
    """Roof inspection document. Every section is optional."""

    summary: Optional[AnalysisSummary] = None
    measurements: Optional[Measurements] = None
    planes: Optional[List[RoofPlane]] = None
    materials: Optional[Materials] = None
    risks: Optional[List[str]] = None
    maintenance: Optional[List[str]] = None
    cost_breakdown: Optional[CostBreakdown] = None
    permits: Optional[Permits] = None
