from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, RootModel, ValidationError

from .errors import UpstreamInvalidOutput


Sentiment = Literal["Positive", "Negative", "Neutral"]
ColumnType = Literal["SCORE", "CATEGORY", "TEXT", "IGNORE"]
ColumnRule = Literal["LIKERT", "BOOLEAN", "TEXT_SCALE"]
Verdict = Literal["Excellent", "Good", "Needs Improvement", "Critical"]


class TaxonomyMode(str, Enum):
	CATEGORIES = "CATEGORIES"
	SUBCATEGORIES = "SUBCATEGORIES"


# ---- Reference data supplied by callers ----

class Category(BaseModel):
	id: Optional[int] = None
	name: str
	description: Optional[str] = None


class Subcategory(BaseModel):
	id: Optional[int] = None
	category_id: Optional[int] = None
	name: str
	description: Optional[str] = None


class Taxonomy(BaseModel):
	categories: List[Category]
	subcategories: List[Subcategory] = Field(default_factory=list)


class Unit(BaseModel):
	id: Optional[int] = None
	name: str
	short_name: Optional[str] = None
	description: Optional[str] = None


class RawFeedbackInput(BaseModel):
	id: int
	# Upload screens send {id, text}; pipeline callers send {id, raw_text}.
	raw_text: str = Field(validation_alias=AliasChoices("raw_text", "text"))


# ---- Model output (validated after JSON parsing) ----

class _ModelOutput(BaseModel):
	model_config = ConfigDict(extra="ignore")


class Segment(_ModelOutput):
	raw_input_id: int
	segment_text: str
	sentiment: Sentiment
	category_name: Optional[str] = None
	sub_category_name: Optional[str] = None
	is_suggestion: bool = False
	related_unit_name: Optional[str] = None


class BatchOutput(_ModelOutput):
	results: List[Segment]


class AnalysisSegment(_ModelOutput):
	text: str
	category_name: Optional[str] = None
	sentiment: Sentiment
	is_suggestion: bool = False
	related_unit_name: Optional[str] = None


class AnalysisResult(_ModelOutput):
	raw_input_id: int
	segments: List[AnalysisSegment] = Field(default_factory=list)


class AnalysisOutput(RootModel[List[AnalysisResult]]):
	pass


class DiscoveredCategory(_ModelOutput):
	name: str
	description: str = ""
	keywords: List[str] = Field(default_factory=list)


class DiscoveryOutput(_ModelOutput):
	categories: List[DiscoveredCategory]


class ColumnMapping(_ModelOutput):
	unit_id: Optional[int] = None
	type: ColumnType
	rule: Optional[ColumnRule] = None


class ColumnMappingOutput(_ModelOutput):
	mappings: Dict[str, ColumnMapping]


class IdentityMapping(_ModelOutput):
	location: List[str] = Field(default_factory=list)
	faculty: List[str] = Field(default_factory=list)
	major: List[str] = Field(default_factory=list)
	year: List[str] = Field(default_factory=list)


class TaxonomySuggestion(_ModelOutput):
	name: str
	description: str = ""
	keywords: Optional[List[str]] = None


class SuggestionOutput(_ModelOutput):
	suggestions: List[TaxonomySuggestion]


class Strength(_ModelOutput):
	title: str
	detail: str
	evidence: str


class Concern(_ModelOutput):
	title: str
	detail: str
	severity: Literal["High", "Medium", "Low"]
	evidence: str


class Recommendation(_ModelOutput):
	title: str
	action: str
	impact: str
	priority: Literal["Immediate", "Short-term", "Long-term"]


class ExecutiveReport(_ModelOutput):
	executive_summary: str
	overall_verdict: Verdict
	strengths: List[Strength] = Field(default_factory=list, max_length=3)
	concerns: List[Concern] = Field(default_factory=list, max_length=3)
	recommendations: List[Recommendation] = Field(default_factory=list, max_length=3)
	closing_statement: str


# ---- Pipeline output ----

class ReconciledSegment(BaseModel):
	raw_input_id: int
	segment_text: str
	sentiment: Sentiment
	is_suggestion: bool
	category_id: Optional[int] = None
	subcategory_id: Optional[int] = None
	related_unit_id: Optional[int] = None


class ReconciledAnalysisSegment(AnalysisSegment):
	category_id: Optional[int] = None
	related_unit_id: Optional[int] = None


class ReconciledAnalysisResult(BaseModel):
	raw_input_id: int
	segments: List[ReconciledAnalysisSegment]


M = TypeVar("M", bound=BaseModel)


def parse_model_output(schema: Type[M], data: Any) -> M:
	"""Check parsed model JSON against ``schema``; mismatches are upstream errors."""
	try:
		return schema.model_validate(data)
	except ValidationError as exc:
		errors = [
			{"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
			for err in exc.errors()[:20]
		]
		raise UpstreamInvalidOutput(
			f"AI response did not match the expected {schema.__name__} schema",
			details={"errors": errors},
		) from exc
