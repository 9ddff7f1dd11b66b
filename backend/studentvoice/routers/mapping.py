from __future__ import annotations
import logging
from typing import Dict, List, Sequence

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..gemini_client import GeminiClient, ResponseMode, get_model_client
from ..prompting import compose_prompt, strip_tags
from ..schemas import ColumnMapping, ColumnMappingOutput, IdentityMapping, parse_model_output


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["import-mapping"])


SAMPLES_PER_HEADER = 4
IDENTITY_GROUPS = ("location", "faculty", "major", "year")


class MappingUnit(BaseModel):
	id: int
	name: str


class MapColumnsRequest(BaseModel):
	headers: List[str]
	samples: Dict[str, List[str]]
	units: List[MappingUnit]


class MapIdentityRequest(BaseModel):
	headers: List[str]


def build_column_mapping_prompt(headers: Sequence[str], samples: Dict[str, List[str]], units: Sequence[MappingUnit]) -> str:
	columns = [{"header": h, "samples": samples.get(h, [])[:SAMPLES_PER_HEADER]} for h in headers]
	return compose_prompt(
		persona="You are a Data Architect classifying survey columns for import.",
		reference=[
			("Target units (id: name)", "\n".join(f"{u.id}: {strip_tags(u.name)}" for u in units) or "(none)"),
			(
				"Data types",
				'1. "SCORE" (quantitative): numbers, Likert scales ("4 = Sangat Puas", "3 = Puas"), '
				'text scales ("Sering", "Jarang", "Setuju"), yes/no answers.\n'
				'2. "CATEGORY" (filter group): short repeating options ("Email", "Phone", "Onsite"), choices. Not for sentiment analysis.\n'
				'3. "TEXT" (open analysis): long comments and suggestions ("Saran", "Komentar") that need sentiment analysis.\n'
				'4. "IGNORE": demographic data (name, date) and identity columns (faculty, major), which are handled elsewhere.',
			),
		],
		payload_title=f"Input columns (header plus up to {SAMPLES_PER_HEADER} sample values)",
		payload=columns,
		steps=[
			"Classify every input column into exactly one data type.",
			"Assign each column to the target unit it evaluates, using that unit's numeric id from the list; use null when no unit fits.",
			'For SCORE columns set rule: "LIKERT" for "4 = Puas" style values, "BOOLEAN" for "Ya/Tidak", "TEXT_SCALE" for "Sering/Jarang". Omit rule otherwise.',
			"Use the header text exactly as given as the mapping key.",
		],
		output_schema=(
			'{"mappings": {"Header Name": {"unit_id": 5, "type": "SCORE|CATEGORY|TEXT|IGNORE", "rule": "LIKERT|BOOLEAN|TEXT_SCALE"}}}'
		),
	)


def build_identity_mapping_prompt(headers: Sequence[str]) -> str:
	return compose_prompt(
		persona="You are a data analyst reviewing CSV headers from a student survey export.",
		reference=[
			(
				"Identity groups",
				'1. "location": campus or site (e.g. Lokasi, Campus).\n'
				'2. "faculty": faculty name (e.g. Fakultas, School).\n'
				'3. "major": study program (e.g. Program Studi, Prodi, Major).\n'
				'4. "year": entry year (e.g. Tahun Masuk, Angkatan, Batch).',
			),
		],
		payload_title="Headers",
		payload=list(headers),
		steps=[
			"Assign each header that identifies the respondent to one of the 4 identity groups.",
			"Leave out headers that belong to no group.",
			"Copy headers exactly as given.",
		],
		output_schema='A raw JSON object only, no markdown: {"location": [], "faculty": [], "major": [], "year": []}',
	)


@router.post("/map-columns")
async def map_columns(req: MapColumnsRequest, client: GeminiClient = Depends(get_model_client)):
	logger.info("Mapping %d columns across %d units", len(req.headers), len(req.units))
	data = await client.invoke(build_column_mapping_prompt(req.headers, req.samples, req.units), ResponseMode.JSON)
	output = parse_model_output(ColumnMappingOutput, data)
	known_headers = set(req.headers)
	unit_ids = {u.id for u in req.units}
	mappings: Dict[str, ColumnMapping] = {}
	for header, mapping in output.mappings.items():
		if header not in known_headers:
			logger.warning("Ignoring mapping for unknown header %r", header)
			continue
		if mapping.unit_id is not None and mapping.unit_id not in unit_ids:
			mapping = mapping.model_copy(update={"unit_id": None})
		mappings[header] = mapping
	return {"mappings": {h: m.model_dump() for h, m in mappings.items()}}


@router.post("/map-identity")
async def map_identity(req: MapIdentityRequest, client: GeminiClient = Depends(get_model_client)):
	logger.info("AI identity mapping: analyzing %d headers", len(req.headers))
	data = await client.invoke(build_identity_mapping_prompt(req.headers), ResponseMode.JSON)
	output = parse_model_output(IdentityMapping, data)
	known_headers = set(req.headers)
	mapping = {group: [h for h in getattr(output, group) if h in known_headers] for group in IDENTITY_GROUPS}
	return {"mapping": mapping}
