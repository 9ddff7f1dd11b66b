from __future__ import annotations
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from .db import Base


class OrganizationUnit(Base):
	__tablename__ = "organization_units"
	id = Column(Integer, primary_key=True)
	name = Column(String(256), nullable=False, unique=True)
	short_name = Column(String(64), nullable=True)
	description = Column(Text, nullable=True)
	analysis_context = Column(Text, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AnalysisCategory(Base):
	__tablename__ = "analysis_categories"
	id = Column(Integer, primary_key=True)
	unit_id = Column(Integer, ForeignKey("organization_units.id"), nullable=False, index=True)
	name = Column(String(256), nullable=False)
	description = Column(Text, nullable=True)


class AnalysisSubcategory(Base):
	__tablename__ = "analysis_subcategories"
	id = Column(Integer, primary_key=True)
	category_id = Column(Integer, ForeignKey("analysis_categories.id"), nullable=False, index=True)
	name = Column(String(256), nullable=False)
	description = Column(Text, nullable=True)


class Respondent(Base):
	__tablename__ = "respondents"
	id = Column(Integer, primary_key=True)
	survey_id = Column(Integer, nullable=True, index=True)
	faculty = Column(String(256), nullable=True)
	study_program = Column(String(256), nullable=True)
	location = Column(String(256), nullable=True)


class RawFeedbackInput(Base):
	__tablename__ = "raw_feedback_inputs"
	id = Column(Integer, primary_key=True)
	target_unit_id = Column(Integer, ForeignKey("organization_units.id"), nullable=False, index=True)
	respondent_id = Column(Integer, ForeignKey("respondents.id"), nullable=True, index=True)
	survey_id = Column(Integer, nullable=True, index=True)
	source_column = Column(String(256), nullable=True)
	raw_text = Column(Text, nullable=False)
	is_quantitative = Column(Boolean, default=False, nullable=False)
	requires_analysis = Column(Boolean, default=True, nullable=False)


class FeedbackSegment(Base):
	__tablename__ = "feedback_segments"
	id = Column(Integer, primary_key=True)
	raw_input_id = Column(Integer, ForeignKey("raw_feedback_inputs.id"), nullable=False, index=True)
	segment_text = Column(Text, nullable=False)
	sentiment = Column(String(16), nullable=False)
	category_id = Column(Integer, ForeignKey("analysis_categories.id"), nullable=True)
	subcategory_id = Column(Integer, ForeignKey("analysis_subcategories.id"), nullable=True)
	is_suggestion = Column(Boolean, default=False, nullable=False)
	related_unit_ids = Column(Text, nullable=True)  # JSON list of cross-tagged unit ids


class UnitAIReport(Base):
	__tablename__ = "unit_ai_reports"
	__table_args__ = (UniqueConstraint("unit_id", "report_type"),)
	id = Column(Integer, primary_key=True)
	unit_id = Column(Integer, ForeignKey("organization_units.id"), nullable=False, index=True)
	report_type = Column(String(32), nullable=False)
	content = Column(Text, nullable=False)  # JSON string snapshot
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
