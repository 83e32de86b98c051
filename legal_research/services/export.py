"""Render a case's latest result as a downloadable Markdown or JSON document."""

import json
from typing import Optional

from ..models.schemas import Case, ExportFormat, ExportPayload, ResearchResult


def export_result(
    case: Case,
    result: Optional[ResearchResult],
    fmt: ExportFormat = ExportFormat.MARKDOWN,
) -> ExportPayload:
    """Build the export payload for a case.

    JSON exports the stored findings verbatim. Markdown renders the summary
    plus the analysis and recommendation sections of the findings; findings
    that are not valid JSON are included as raw text.
    """
    title = case.title or f"case-{case.id}"
    findings = result.findings if result else None

    if fmt == ExportFormat.JSON:
        return ExportPayload(
            filename=f"{title}_verdict.json",
            mime="application/json",
            content=findings or "{}",
        )

    md = f"# Research Results: {title}\n\n"
    if result and result.summary:
        md += f"## Summary\n\n{result.summary}\n\n"
    if findings:
        try:
            parsed = json.loads(findings)
        except json.JSONDecodeError:
            md += f"## Findings\n\n{findings}"
        else:
            if isinstance(parsed, dict):
                if parsed.get("analysis"):
                    md += f"## Analysis\n\n{parsed['analysis']}\n\n"
                if parsed.get("recommendation"):
                    md += f"## Recommendation\n\n{parsed['recommendation']}\n\n"
            else:
                md += f"## Findings\n\n{findings}"

    return ExportPayload(filename=f"{title}.md", mime="text/markdown", content=md)
