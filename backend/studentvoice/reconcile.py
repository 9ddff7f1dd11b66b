"""Map model-produced names back to the ids of the caller's reference data.

Matching is exact and case-sensitive. A name that does not match resolves
to ``None``; the segment itself is always kept.
"""
from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Sequence

from .schemas import Category, ReconciledSegment, Segment, Subcategory, Taxonomy, Unit


logger = logging.getLogger(__name__)


def resolve_category(name: Optional[str], categories: Sequence[Category]) -> Optional[Category]:
	if name is None:
		return None
	for category in categories:
		if category.name == name and category.id is not None:
			return category
	return None


def resolve_subcategory(name: Optional[str], parent: Optional[Category], subcategories: Sequence[Subcategory]) -> Optional[Subcategory]:
	if name is None or parent is None:
		return None
	for sub in subcategories:
		if sub.category_id == parent.id and sub.name == name and sub.id is not None:
			return sub
	return None


def resolve_unit(name: Optional[str], units: Sequence[Unit]) -> Optional[Unit]:
	if not name:
		return None
	# Units listed without an id still confirm the cross-tag name.
	for unit in units:
		if unit.name == name:
			return unit
	return None


def orphan_subcategories(taxonomy: Taxonomy) -> List[Subcategory]:
	category_ids = {c.id for c in taxonomy.categories if c.id is not None}
	return [s for s in taxonomy.subcategories if s.category_id not in category_ids]


def reconcile(segments: Iterable[Segment], taxonomy: Taxonomy, units: Sequence[Unit] = ()) -> List[ReconciledSegment]:
	orphans = orphan_subcategories(taxonomy)
	if orphans:
		logger.warning("Ignoring %d subcategories without a parent category: %s", len(orphans), [s.name for s in orphans])

	reconciled: List[ReconciledSegment] = []
	unmatched = 0
	for seg in segments:
		category = resolve_category(seg.category_name, taxonomy.categories)
		subcategory = resolve_subcategory(seg.sub_category_name, category, taxonomy.subcategories)
		unit = resolve_unit(seg.related_unit_name, units)
		if category is None:
			unmatched += 1
		reconciled.append(
			ReconciledSegment(
				raw_input_id=seg.raw_input_id,
				segment_text=seg.segment_text,
				sentiment=seg.sentiment,
				is_suggestion=seg.is_suggestion,
				category_id=category.id if category else None,
				subcategory_id=subcategory.id if subcategory else None,
				related_unit_id=unit.id if unit else None,
			)
		)
	if unmatched:
		logger.info("%d of %d segments have no matching category", unmatched, len(reconciled))
	return reconciled
