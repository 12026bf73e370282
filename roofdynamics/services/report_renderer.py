"""Render a roof analysis into HTML and plain-text reports.

Both renderers are pure functions of the analysis payload, the address
and the report date.
"""

from datetime import date
from html import escape
from typing import Any, Dict, List, Optional


def _section(analysis: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = analysis.get(name)
    return value if isinstance(value, dict) else {}


def _items(analysis: Dict[str, Any], name: str) -> Optional[List[Any]]:
    value = analysis.get(name)
    return value if isinstance(value, list) else None


def _or(value: Any, fallback: Any) -> Any:
    """Fall back on missing or empty values (None, '', 0, False)."""
    return value if value else fallback


def format_number(value: Any) -> str:
    """Format a number with US thousands separators, e.g. 14850 -> '14,850'."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return "0"
    if isinstance(value, float) and not value.is_integer():
        text = f"{value:,.3f}".rstrip("0").rstrip(".")
        return text
    return f"{int(value):,}"


def format_date(report_date: date) -> str:
    return f"{report_date.month}/{report_date.day}/{report_date.year}"


def render_report_html(analysis: Dict[str, Any], address: str, report_date: date) -> str:
    """Render the styled HTML report."""
    summary = _section(analysis, "summary")
    measurements = _section(analysis, "measurements")
    costs = _section(analysis, "cost_breakdown")
    risks = _items(analysis, "risks")
    maintenance = _items(analysis, "maintenance")

    def cell(value: Any, fallback: Any) -> str:
        return escape(str(_or(value, fallback)))

    if risks is not None:
        risk_items = "".join(f"<li>{escape(str(r))}</li>" for r in risks)
    else:
        risk_items = "<li>No risks identified</li>"

    if maintenance is not None:
        maintenance_items = "".join(f"<li>{escape(str(m))}</li>" for m in maintenance)
    else:
        maintenance_items = "<li>No maintenance items</li>"

    address_html = escape(address)

    return f"""<!DOCTYPE html>
<html>
<head>
  <title>Roof Inspection Report - {address_html}</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 20px; }}
    .header {{ text-align: center; margin-bottom: 30px; }}
    .section {{ margin-bottom: 25px; }}
    .table {{ width: 100%; border-collapse: collapse; }}
    .table th, .table td {{ border: 1px solid #ddd; padding: 8px; text-align: left; }}
    .table th {{ background-color: #f2f2f2; }}
  </style>
</head>
<body>
  <div class="header">
    <h1>Professional Roof Inspection Report</h1>
    <h2>{address_html}</h2>
    <p>Generated on {format_date(report_date)}</p>
  </div>

  <div class="section">
    <h3>Summary</h3>
    <p><strong>Overall Risk:</strong> {cell(summary.get("overall_risk"), "N/A")}</p>
    <p><strong>Notes:</strong> {cell(summary.get("notes"), "N/A")}</p>
  </div>

  <div class="section">
    <h3>Measurements</h3>
    <table class="table">
      <tr><th>Measurement</th><th>Value</th></tr>
      <tr><td>Total Area</td><td>{cell(measurements.get("total_area_sqft"), 0)} sq ft</td></tr>
      <tr><td>Average Pitch</td><td>{cell(measurements.get("avg_pitch"), "N/A")}</td></tr>
      <tr><td>Ridge Length</td><td>{cell(measurements.get("ridge_length_ft"), 0)} ft</td></tr>
      <tr><td>Valley Length</td><td>{cell(measurements.get("valley_length_ft"), 0)} ft</td></tr>
      <tr><td>Eaves Length</td><td>{cell(measurements.get("eaves_length_ft"), 0)} ft</td></tr>
    </table>
  </div>

  <div class="section">
    <h3>Cost Breakdown</h3>
    <table class="table">
      <tr><th>Item</th><th>Cost</th></tr>
      <tr><td>Labor</td><td>${format_number(costs.get("labor_usd"))}</td></tr>
      <tr><td>Materials</td><td>${format_number(costs.get("materials_usd"))}</td></tr>
      <tr><td>Disposal</td><td>${format_number(costs.get("disposal_usd"))}</td></tr>
      <tr><td>Contingency</td><td>${format_number(costs.get("contingency_usd"))}</td></tr>
      <tr><th>Total</th><th>${format_number(costs.get("total_usd"))}</th></tr>
    </table>
  </div>

  <div class="section">
    <h3>Identified Risks</h3>
    <ul>
      {risk_items}
    </ul>
  </div>

  <div class="section">
    <h3>Maintenance Recommendations</h3>
    <ul>
      {maintenance_items}
    </ul>
  </div>
</body>
</html>
"""


def _numbered(items: Optional[List[Any]], empty: str) -> str:
    if items is None:
        return empty
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def render_report_text(analysis: Dict[str, Any], address: str, report_date: date) -> str:
    """Render the plain-text report that is stored as the run's artifact."""
    summary = _section(analysis, "summary")
    measurements = _section(analysis, "measurements")
    costs = _section(analysis, "cost_breakdown")
    permits = _section(analysis, "permits")

    overall_risk = summary.get("overall_risk")
    risk_level = overall_risk.upper() if isinstance(overall_risk, str) and overall_risk else "UNKNOWN"

    lines = [
        "ROOF INSPECTION REPORT",
        "======================",
        "",
        f"Property Address: {address}",
        f"Report Date: {format_date(report_date)}",
        "Generated by: Roof Dynamics AI Analysis",
        "",
        "SUMMARY",
        "-------",
        f"Overall Risk Level: {risk_level}",
        f"Notes: {_or(summary.get('notes'), 'No additional notes')}",
        "",
        "MEASUREMENTS",
        "------------",
        f"Total Roof Area: {_or(measurements.get('total_area_sqft'), 0)} square feet",
        f"Average Pitch: {_or(measurements.get('avg_pitch'), 'Unknown')}",
        f"Ridge Length: {_or(measurements.get('ridge_length_ft'), 0)} feet",
        f"Valley Length: {_or(measurements.get('valley_length_ft'), 0)} feet",
        f"Eaves Length: {_or(measurements.get('eaves_length_ft'), 0)} feet",
        "",
        "COST BREAKDOWN",
        "--------------",
        f"Labor Cost: ${format_number(costs.get('labor_usd'))}",
        f"Materials Cost: ${format_number(costs.get('materials_usd'))}",
        f"Disposal Cost: ${format_number(costs.get('disposal_usd'))}",
        f"Contingency: ${format_number(costs.get('contingency_usd'))}",
        f"TOTAL ESTIMATED COST: ${format_number(costs.get('total_usd'))}",
        "",
        "IDENTIFIED RISKS",
        "----------------",
        _numbered(_items(analysis, "risks"), "No risks identified"),
        "",
        "MAINTENANCE RECOMMENDATIONS",
        "---------------------------",
        _numbered(_items(analysis, "maintenance"), "No maintenance recommendations"),
        "",
        "PERMIT REQUIREMENTS",
        "-------------------",
        f"Permits Required: {'YES' if permits.get('required') else 'NO'}",
        f"Notes: {_or(permits.get('notes'), 'No permit notes available')}",
        "",
        "---",
        "This report was generated using AI analysis and should be reviewed by a qualified professional.",
        "For questions or concerns, please contact Roof Dynamics support.",
    ]
    return "\n".join(lines)
