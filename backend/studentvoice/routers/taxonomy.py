from __future__ import annotations
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, model_validator

from ..gemini_client import GeminiClient, ResponseMode, get_model_client
from ..prompting import compose_prompt, named_list, strip_tags
from ..schemas import SuggestionOutput, TaxonomyMode, parse_model_output


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["taxonomy"])


class SuggestTaxonomyRequest(BaseModel):
	unitName: str
	unitDesc: Optional[str] = None
	sampleComments: List[str]
	existingCategories: Optional[Any] = None
	mode: TaxonomyMode = TaxonomyMode.CATEGORIES
	additionalContext: Optional[str] = None

	@model_validator(mode="after")
	def _parent_required_for_subcategories(self) -> "SuggestTaxonomyRequest":
		if self.mode is TaxonomyMode.SUBCATEGORIES:
			parent = self.existingCategories
			if not isinstance(parent, dict) or not isinstance(parent.get("name"), str) or not parent["name"].strip():
				raise ValueError("existingCategories must be the parent category object with a name in SUBCATEGORIES mode")
		return self


def _existing_names(existing: Any) -> List[dict]:
	if isinstance(existing, list):
		return [e for e in existing if isinstance(e, dict) and e.get("name")]
	return []


def build_taxonomy_prompt(req: SuggestTaxonomyRequest) -> str:
	context = f'Unit: "{strip_tags(req.unitName)}"'
	if req.unitDesc:
		context += f" ({strip_tags(req.unitDesc)})"
	if req.additionalContext:
		context += f"\nUSER IMPORTANT NOTES: {strip_tags(req.additionalContext)}"

	if req.mode is TaxonomyMode.CATEGORIES:
		return compose_prompt(
			persona="You are setting up a professional feedback taxonomy for a university unit.",
			context=context,
			reference=[("Existing categories (do not repeat)", named_list(_existing_names(req.existingCategories)))],
			payload_title="Sample comments",
			payload=req.sampleComments,
			steps=[
				"Identify distinct topics or systems the comments talk about.",
				'Use the "USER IMPORTANT NOTES" to prioritize specific systems (e.g. if the notes mention "M-Flex", make a category for it).',
				"Be SPECIFIC.",
				"Generate 8-15 categories if supported by the data; fewer when the comments do not support more.",
			],
			output_schema='{"suggestions": [{"name": "Category Name", "description": "Definition", "keywords": ["k1", "k2"]}]}',
		)

	parent = req.existingCategories
	parent_line = f'"{strip_tags(parent["name"])}"'
	if parent.get("description"):
		parent_line += f": {strip_tags(str(parent['description']))}"
	return compose_prompt(
		persona="You are defining subcategories for one category of a university unit's feedback taxonomy.",
		context=context,
		reference=[("Parent category", parent_line)],
		payload_title="Sample comments",
		payload=req.sampleComments,
		steps=[
			"Suggest 5-10 subcategories of the parent category; fewer when the comments do not support more.",
			"Each subcategory must fit strictly inside the parent category.",
		],
		output_schema='{"suggestions": [{"name": "Subcategory Name", "description": "Definition"}]}',
	)


@router.post("/suggest-taxonomy")
async def suggest_taxonomy(req: SuggestTaxonomyRequest, client: GeminiClient = Depends(get_model_client)):
	logger.info("Taxonomy suggestions (%s) for %r from %d comments", req.mode.value, req.unitName, len(req.sampleComments))
	data = await client.invoke(build_taxonomy_prompt(req), ResponseMode.JSON)
	output = parse_model_output(SuggestionOutput, data)
	return output.model_dump(exclude_none=True)
