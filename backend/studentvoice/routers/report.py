from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..gemini_client import GeminiClient, ResponseMode, get_model_client
from ..prompting import compose_prompt, strip_tags
from ..schemas import ExecutiveReport, parse_model_output
from ..settings import Settings, get_settings


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["reports"])


MAX_SAMPLE_SEGMENTS = 100
ITEMS_PER_SECTION = 3


class GenerateReportRequest(BaseModel):
	unitName: str
	unitDescription: Optional[str] = None
	stats: Any
	segments: List[Any]
	categoryBreakdown: Optional[List[Any]] = None


def _segment_text(segment: Any) -> str:
	if isinstance(segment, str):
		return segment
	if isinstance(segment, dict):
		return str(segment.get("segment_text") or segment.get("text") or "")
	return ""


def build_report_prompt(req: GenerateReportRequest, *, institution: str) -> str:
	context = f'Unit: "{strip_tags(req.unitName)}"'
	if req.unitDescription:
		context += f"\nUnit description: {strip_tags(req.unitDescription)}"
	return compose_prompt(
		persona=f"You are a Strategic Consultant writing an executive feedback report for the leadership of {institution}.",
		context=context,
		reference=[],
		data=[
			("Aggregated statistics", req.stats),
			("Category breakdown", req.categoryBreakdown or []),
		],
		payload_title=f"Sample feedback segments (up to {MAX_SAMPLE_SEGMENTS})",
		payload=list(req.segments[:MAX_SAMPLE_SEGMENTS]),
		steps=[
			"Write a short executive_summary of the unit's overall feedback picture.",
			'Choose overall_verdict from exactly: "Excellent", "Good", "Needs Improvement", "Critical".',
			f"List exactly {ITEMS_PER_SECTION} strengths, {ITEMS_PER_SECTION} concerns and {ITEMS_PER_SECTION} recommendations. "
			f"If the data supports fewer, list fewer. Never invent findings and never list more than {ITEMS_PER_SECTION}.",
			"Every evidence field must be a verbatim quote copied from the sample feedback segments. Do not invent or paraphrase quotes.",
			'Concern severity is one of "High", "Medium", "Low"; recommendation priority is one of "Immediate", "Short-term", "Long-term".',
			"End with a one or two sentence closing_statement.",
		],
		output_schema=(
			"A JSON object:\n"
			'{"executive_summary": "...", "overall_verdict": "Excellent|Good|Needs Improvement|Critical", '
			'"strengths": [{"title": "...", "detail": "...", "evidence": "verbatim quote"}], '
			'"concerns": [{"title": "...", "detail": "...", "severity": "High|Medium|Low", "evidence": "verbatim quote"}], '
			'"recommendations": [{"title": "...", "action": "...", "impact": "...", "priority": "Immediate|Short-term|Long-term"}], '
			'"closing_statement": "..."}'
		),
	)


def find_unverified_quotes(report: ExecutiveReport, segments: Sequence[Any]) -> List[str]:
	texts = [_segment_text(s) for s in segments]
	quotes = [s.evidence for s in report.strengths] + [c.evidence for c in report.concerns]
	return [q for q in quotes if q and not any(q in t for t in texts)]


@router.post("/generate-report")
async def generate_report(
	req: GenerateReportRequest,
	client: GeminiClient = Depends(get_model_client),
	settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
	logger.info("Executive report for %r from %d segments", req.unitName, len(req.segments))
	data = await client.invoke(build_report_prompt(req, institution=settings.institution_name), ResponseMode.JSON)
	report = parse_model_output(ExecutiveReport, data)
	unverified = find_unverified_quotes(report, req.segments[:MAX_SAMPLE_SEGMENTS])
	if unverified:
		logger.warning("Report for %r cites %d quotes not found in the sample: %s", req.unitName, len(unverified), unverified)
	return {"report": report.model_dump()}
