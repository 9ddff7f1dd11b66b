from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..gemini_client import GeminiClient, ResponseMode, get_model_client
from ..prompting import bullet_list, compose_prompt, named_list, strip_tags
from ..reconcile import reconcile, resolve_category, resolve_unit
from ..schemas import (
	AnalysisOutput,
	BatchOutput,
	Category,
	DiscoveryOutput,
	RawFeedbackInput,
	ReconciledAnalysisResult,
	ReconciledAnalysisSegment,
	Taxonomy,
	Unit,
	parse_model_output,
)
from ..settings import Settings, get_settings


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["analysis"])


DISCOVERY_SAMPLE_SIZE = 100
NOISE_EXAMPLES = ["-", "tidak ada", "no comment", "cukup", "n/a"]
SUGGESTION_KEYWORDS = ['"Semoga" (hope)', '"Mohon" (please)', '"Harap"', '"Sebaiknya" (should)', '"Agar" (so that)', '"Tolong"']


class BatchContext(BaseModel):
	name: str
	description: Optional[str] = None


class AnalyzeBatchRequest(BaseModel):
	comments: List[Union[RawFeedbackInput, str]]
	context: BatchContext
	taxonomy: Taxonomy


class UnitContext(BaseModel):
	name: str
	description: Optional[str] = None
	instructions: List[str] = Field(default_factory=list)


class RunAnalysisRequest(BaseModel):
	comments: List[RawFeedbackInput]
	taxonomy: List[Category]
	allUnits: List[Unit]
	unitContext: UnitContext


class DiscoverCategoriesRequest(BaseModel):
	comments: List[str]
	currentCategories: List[Dict[str, Any]] = Field(default_factory=list)
	instructions: List[str] = Field(default_factory=list)
	unitName: str


def _normalize_comments(comments: Sequence[Union[RawFeedbackInput, str]]) -> List[RawFeedbackInput]:
	# Plain strings carry no id; each takes the lowest position-based id not already used by an object comment.
	taken = {c.id for c in comments if isinstance(c, RawFeedbackInput)}
	normalized = []
	next_id = 0
	for comment in comments:
		if isinstance(comment, RawFeedbackInput):
			normalized.append(comment)
			continue
		while next_id in taken:
			next_id += 1
		normalized.append(RawFeedbackInput(id=next_id, raw_text=comment))
		next_id += 1
	return normalized


def _subcategories_by_parent(taxonomy: Taxonomy) -> Dict[str, List[str]]:
	parents = {}
	for category in taxonomy.categories:
		if category.id is not None:
			parents.setdefault(category.id, category.name)
	grouped: Dict[str, List[str]] = {}
	for sub in taxonomy.subcategories:
		if sub.category_id in parents:
			grouped.setdefault(parents[sub.category_id], []).append(sub.name)
	return grouped


def build_batch_prompt(comments: Sequence[RawFeedbackInput], context: BatchContext, taxonomy: Taxonomy, *, institution: str) -> str:
	grouped = _subcategories_by_parent(taxonomy)
	subcats = "\n".join(
		f'- "{strip_tags(parent)}": ' + ", ".join(f'"{strip_tags(s)}"' for s in subs)
		for parent, subs in grouped.items()
	) or "(none defined)"
	unit_line = f'Unit under analysis: "{strip_tags(context.name)}"'
	if context.description:
		unit_line += f" ({strip_tags(context.description)})"
	return compose_prompt(
		persona=f"You are an expert Data Analyst for {institution}, analyzing student feedback.",
		context=unit_line,
		reference=[
			("High-level categories (strict taxonomy)", named_list(taxonomy.categories)),
			("Valid subcategories grouped by category", subcats),
		],
		payload_title="Comments to analyze (JSON array of {id, raw_text})",
		payload=[c.model_dump() for c in comments],
		steps=[
			"Analyze each comment independently.",
			"SPLIT a comment into multiple segments when it discusses different topics; produce one segment per distinct topic.",
			'Set sentiment to exactly one of "Positive", "Negative" or "Neutral".',
			"Set category_name to one of the high-level category names above, copied exactly.",
			'Set sub_category_name to a valid subcategory of that category, copied exactly. If none fits, use "General".',
			"Set is_suggestion to true only when the segment proposes a change or improvement.",
			"Echo the comment's id unchanged as raw_input_id.",
			"Produce no segments for comments without analyzable content.",
		],
		output_schema=(
			'A JSON object with a "results" array:\n'
			'{"results": [{"raw_input_id": 123, "segment_text": "...", "sentiment": "Positive|Negative|Neutral", '
			'"category_name": "...", "sub_category_name": "...", "is_suggestion": false}]}'
		),
	)


def build_run_analysis_prompt(
	comments: Sequence[RawFeedbackInput],
	taxonomy: Sequence[Category],
	units: Sequence[Unit],
	unit_context: UnitContext,
	*,
	institution: str,
) -> str:
	context = f"Unit: {strip_tags(unit_context.name)}"
	if unit_context.description:
		context += f"\nUnit description: {strip_tags(unit_context.description)}"
	if unit_context.instructions:
		context += "\nUnit rules: " + "; ".join(strip_tags(i) for i in unit_context.instructions)
	noise = ", ".join(f'"{n}"' for n in NOISE_EXAMPLES)
	return compose_prompt(
		persona=f"You are an expert Data Analyst for {institution}. Transform raw feedback text into structured data.",
		context=context,
		reference=[
			("Taxonomy", named_list(taxonomy)),
			("Cross-tagging units", named_list(units)),
		],
		payload_title="Comments (JSON array of {id, raw_text})",
		payload=[c.model_dump() for c in comments],
		steps=[
			'Segmentation: split distinct topics. "Lecturer good but AC hot" becomes 2 segments.',
			f"Noise filter: IGNORE comments that are just {noise} or similar. Do NOT create segments for them; return an empty segments array.",
			"Categorization: assign the best category_name from the taxonomy, copied exactly.",
			'Sentiment: Positive, Negative or Neutral. Plain satisfaction ("Sudah baik", "Ok") is Positive or Neutral.',
			"Suggestion detection: set is_suggestion to true if the student proposes a change, a future wish or a specific fix. Typical keywords: "
			+ ", ".join(SUGGESTION_KEYWORDS) + ".",
			"Cross-tagging: if a segment is about another unit from the list, put that unit's exact name in related_unit_name; otherwise null.",
			"Echo each comment's id unchanged as raw_input_id.",
		],
		output_schema=(
			"A JSON array with one entry per comment:\n"
			'[{"raw_input_id": 123, "segments": [{"text": "...", "category_name": "...", '
			'"sentiment": "Positive|Negative|Neutral", "is_suggestion": true, "related_unit_name": null}]}]'
		),
	)


def build_discovery_prompt(
	comments: Sequence[str],
	current_categories: Sequence[Dict[str, Any]],
	instructions: Sequence[str],
	unit_name: str,
	*,
	core_categories: Sequence[Dict[str, str]] = (),
) -> str:
	return compose_prompt(
		persona=f'You are a Taxonomy Architect analyzing student feedback for the unit "{strip_tags(unit_name)}".',
		reference=[
			("User instructions", bullet_list((strip_tags(i) for i in instructions), empty="(none)")),
			("Baseline categories", named_list(core_categories)),
		],
		data=[("Existing categories", list(current_categories) or "(None yet - start fresh)")],
		payload_title=f"New comments batch (first {DISCOVERY_SAMPLE_SIZE} shown)",
		payload=list(comments[:DISCOVERY_SAMPLE_SIZE]),
		steps=[
			"If a comment fits an existing category, do nothing.",
			"If a comment introduces a NEW distinct topic, create a new category.",
			"If a comment shows an existing category needs a better name or description, update it.",
			'IGNORE meaningless comments ("-", "no comment", "ok").',
			"Keep a baseline category when the comments support it.",
			'An "Others" category is allowed for miscellaneous items.',
		],
		output_schema=(
			"Return the COMPLETE updated list of categories as a JSON object:\n"
			'{"categories": [{"name": "Category Name", "description": "Definition", "keywords": ["keyword1", "keyword2"]}]}'
		),
	)


@router.post("/analyze-batch")
async def analyze_batch(
	req: AnalyzeBatchRequest,
	client: GeminiClient = Depends(get_model_client),
	settings: Settings = Depends(get_settings),
):
	comments = _normalize_comments(req.comments)
	logger.info("Batch analysis for %r: %d comments", req.context.name, len(comments))
	prompt = build_batch_prompt(comments, req.context, req.taxonomy, institution=settings.institution_name)
	data = await client.invoke(prompt, ResponseMode.JSON)
	output = parse_model_output(BatchOutput, data)
	known_ids = {c.id for c in comments}
	segments = [s for s in output.results if s.raw_input_id in known_ids]
	if len(segments) != len(output.results):
		logger.warning("Dropped %d segments referencing unknown comment ids", len(output.results) - len(segments))
	results = reconcile(segments, req.taxonomy)
	return {"results": [r.model_dump() for r in results]}


@router.post("/run-analysis")
async def run_analysis(
	req: RunAnalysisRequest,
	client: GeminiClient = Depends(get_model_client),
	settings: Settings = Depends(get_settings),
):
	logger.info("Run analysis for %r: %d comments", req.unitContext.name, len(req.comments))
	prompt = build_run_analysis_prompt(req.comments, req.taxonomy, req.allUnits, req.unitContext, institution=settings.institution_name)
	data = await client.invoke(prompt, ResponseMode.JSON)
	output = parse_model_output(AnalysisOutput, data).root
	known_ids = {c.id for c in req.comments}
	results: List[ReconciledAnalysisResult] = []
	for item in output:
		if item.raw_input_id not in known_ids:
			logger.warning("Dropping analysis for unknown comment id %s", item.raw_input_id)
			continue
		segments = []
		for seg in item.segments:
			category = resolve_category(seg.category_name, req.taxonomy)
			unit = resolve_unit(seg.related_unit_name, req.allUnits)
			segments.append(
				ReconciledAnalysisSegment(
					**seg.model_dump(exclude={"related_unit_name"}),
					related_unit_name=seg.related_unit_name if unit else None,
					category_id=category.id if category else None,
					related_unit_id=unit.id if unit else None,
				)
			)
		results.append(ReconciledAnalysisResult(raw_input_id=item.raw_input_id, segments=segments))
	return [r.model_dump() for r in results]


@router.post("/discover-categories")
async def discover_categories(
	req: DiscoverCategoriesRequest,
	client: GeminiClient = Depends(get_model_client),
	settings: Settings = Depends(get_settings),
):
	logger.info("Category discovery for %r: %d comments, %d existing", req.unitName, len(req.comments), len(req.currentCategories))
	prompt = build_discovery_prompt(
		req.comments,
		req.currentCategories,
		req.instructions,
		req.unitName,
		core_categories=settings.core_categories,
	)
	data = await client.invoke(prompt, ResponseMode.JSON)
	output = parse_model_output(DiscoveryOutput, data)
	return output.model_dump()
