"""Read-only aggregations over stored feedback segments."""
from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from .models import AnalysisCategory, FeedbackSegment, OrganizationUnit, RawFeedbackInput, Respondent, UnitAIReport


logger = logging.getLogger(__name__)

SENTIMENTS = ("Positive", "Neutral", "Negative")
UNCATEGORIZED = "Uncategorized"
NO_UNIT_DESCRIPTION = "No specific context provided."


def _count_if(condition):
	return func.sum(case((condition, 1), else_=0))


def _unit_segments(unit_id: int, survey_id: Optional[int]):
	stmt = (
		select(FeedbackSegment)
		.join(RawFeedbackInput, FeedbackSegment.raw_input_id == RawFeedbackInput.id)
		.where(RawFeedbackInput.target_unit_id == unit_id)
	)
	if survey_id is not None:
		stmt = stmt.where(RawFeedbackInput.survey_id == survey_id)
	return stmt.subquery()


def sentiment_score(positive: int, neutral: int, total: int) -> int:
	if total <= 0:
		return 0
	return round((positive * 100 + neutral * 50) / total)


def get_dashboard_metrics(db: Session, unit_id: int, survey_id: Optional[int] = None) -> Dict[str, Any]:
	seg = _unit_segments(unit_id, survey_id)

	sentiment_rows = db.execute(
		select(seg.c.sentiment, func.count()).group_by(seg.c.sentiment)
	).all()
	sentiment_counts = {s: 0 for s in SENTIMENTS}
	for sentiment, count in sentiment_rows:
		sentiment_counts[sentiment] = sentiment_counts.get(sentiment, 0) + count
	total = sum(count for _, count in sentiment_rows)

	suggestion_count = db.execute(
		select(func.count()).select_from(seg).where(seg.c.is_suggestion.is_(True))
	).scalar_one()

	category_rows = db.execute(
		select(
			seg.c.category_id,
			AnalysisCategory.name,
			func.count(),
			_count_if(seg.c.sentiment == "Positive"),
			_count_if(seg.c.sentiment == "Negative"),
			_count_if(seg.c.sentiment == "Neutral"),
		)
		.outerjoin(AnalysisCategory, seg.c.category_id == AnalysisCategory.id)
		.group_by(seg.c.category_id, AnalysisCategory.name)
		.order_by(func.count().desc(), AnalysisCategory.name)
	).all()
	category_counts = [
		{
			"category_id": category_id,
			"category_name": name or UNCATEGORIZED,
			"total": count,
			"positive_count": int(pos or 0),
			"negative_count": int(neg or 0),
			"neutral_count": int(neu or 0),
		}
		for category_id, name, count, pos, neg, neu in category_rows
	]

	return {
		"total_segments": total,
		"sentiment_counts": sentiment_counts,
		"suggestion_count": suggestion_count,
		"category_counts": category_counts,
	}


def get_executive_report(db: Session, unit_id: int) -> Optional[Dict[str, Any]]:
	row = db.execute(
		select(UnitAIReport).where(UnitAIReport.unit_id == unit_id, UnitAIReport.report_type == "executive")
	).scalar_one_or_none()
	if row is None:
		return None
	try:
		content = json.loads(row.content)
	except json.JSONDecodeError:
		logger.warning("Stored executive report for unit %s is not valid JSON", unit_id)
		return None
	if isinstance(content, dict) and "report" in content:
		return content["report"]
	return content


def get_all_executive_metrics(db: Session, survey_id: Optional[int] = None) -> List[Dict[str, Any]]:
	units = db.execute(select(OrganizationUnit.id, OrganizationUnit.name).order_by(OrganizationUnit.id)).all()
	stats = []
	for unit_id, name in units:
		metrics = get_dashboard_metrics(db, unit_id, survey_id)
		counts = metrics["sentiment_counts"]
		total = metrics["total_segments"]
		stats.append({
			"id": unit_id,
			"name": name,
			"total": total,
			"positive": counts["Positive"],
			"neutral": counts["Neutral"],
			"negative": counts["Negative"],
			"score": sentiment_score(counts["Positive"], counts["Neutral"], total),
		})
	return stats


def _category_key(name: str) -> str:
	return "category_" + re.sub(r"[^a-zA-Z0-9]", "_", name)


def get_macro_metrics(db: Session, survey_id: Optional[int] = None) -> List[Dict[str, Any]]:
	"""One flat row per unit with feedback, ready to chart across units.

	Each category contributes ``category_<Name>`` (total) plus ``_pos`` and
	``_neg`` keys, with non-alphanumerics in the name replaced by ``_``.
	Units without any segments are skipped.
	"""
	units = db.execute(
		select(OrganizationUnit.id, OrganizationUnit.name, OrganizationUnit.short_name, OrganizationUnit.description)
		.order_by(OrganizationUnit.id)
	).all()
	rows = []
	for unit_id, name, short_name, description in units:
		metrics = get_dashboard_metrics(db, unit_id, survey_id)
		total = metrics["total_segments"]
		if total <= 0:
			continue
		counts = metrics["sentiment_counts"]
		row = {
			"unit_id": unit_id,
			"unit_name": name,
			"unit_short_name": short_name,
			"unit_description": description or NO_UNIT_DESCRIPTION,
			"total_segments": total,
			"positive": counts["Positive"],
			"neutral": counts["Neutral"],
			"negative": counts["Negative"],
			"score": sentiment_score(counts["Positive"], counts["Neutral"], total),
			"suggestion_count": metrics["suggestion_count"],
		}
		for category in metrics["category_counts"]:
			key = _category_key(category["category_name"])
			row[key] = category["total"]
			row[f"{key}_pos"] = category["positive_count"]
			row[f"{key}_neg"] = category["negative_count"]
		rows.append(row)
	return rows


def _related_unit_ids(raw: Optional[str]) -> List[int]:
	if not raw:
		return []
	try:
		ids = json.loads(raw)
	except json.JSONDecodeError:
		logger.warning("Ignoring malformed related_unit_ids %r", raw)
		return []
	return [i for i in ids if isinstance(i, int)] if isinstance(ids, list) else []


def list_suggestions(db: Session, survey_id: Optional[int] = None) -> List[Dict[str, Any]]:
	stmt = (
		select(FeedbackSegment, RawFeedbackInput, AnalysisCategory.name, OrganizationUnit, Respondent)
		.join(RawFeedbackInput, FeedbackSegment.raw_input_id == RawFeedbackInput.id)
		.outerjoin(AnalysisCategory, FeedbackSegment.category_id == AnalysisCategory.id)
		.outerjoin(OrganizationUnit, RawFeedbackInput.target_unit_id == OrganizationUnit.id)
		.outerjoin(Respondent, RawFeedbackInput.respondent_id == Respondent.id)
		.where(FeedbackSegment.is_suggestion.is_(True))
		.order_by(FeedbackSegment.id.desc())
	)
	if survey_id is not None:
		stmt = stmt.where(RawFeedbackInput.survey_id == survey_id)
	out = []
	for seg, raw, category_name, unit, respondent in db.execute(stmt).all():
		out.append({
			"id": seg.id,
			"text": seg.segment_text,
			"original_text": raw.raw_text,
			"sentiment": seg.sentiment,
			"category": category_name or UNCATEGORIZED,
			"unit": {
				"id": raw.target_unit_id,
				"name": unit.name if unit else "Unknown Unit",
				"short_name": unit.short_name if unit else None,
			},
			"context": {
				"faculty": respondent.faculty if respondent else None,
				"program": respondent.study_program if respondent else None,
				"location": respondent.location if respondent else None,
			},
			"related_unit_ids": _related_unit_ids(seg.related_unit_ids),
		})
	return out
