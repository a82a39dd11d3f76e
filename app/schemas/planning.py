"""Output contract for extracted planning artifacts.

Field names are snake_case in Python and camelCase on the wire and in the
stored JSON (``model_dump(by_alias=True)``), matching what the rest of the
product reads.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union, get_origin
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ArtifactModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

	@field_validator('*', mode='before')
	@classmethod
	def null_lists_to_empty(cls, v, info):
		# Models often send null where the schema asks for an empty array
		field = cls.model_fields.get(info.field_name)
		if v is None and field is not None and get_origin(field.annotation) is list:
			return []
		return v


def _coerce_amount(v):
	if isinstance(v, str):
		cleaned = re.sub(r"[£,\s]|GBP", "", v, flags=re.IGNORECASE)
		return cleaned or None
	return v


def _coerce_currency(v):
	if v is None or (isinstance(v, str) and v.strip().upper() in ("GBP", "£", "")):
		return "GBP"
	return v


class SiteInfo(ArtifactModel):
	name: Optional[str] = None
	address: Optional[str] = None
	local_authority: Optional[str] = None
	client_name: Optional[str] = None


class ProposalInfo(ArtifactModel):
	description: Optional[str] = None
	route: List[str] = Field(default_factory=list)
	dwellings_min: Optional[Union[int, float]] = None
	dwellings_max: Optional[Union[int, float]] = None
	is_housing_led: bool = False

	@field_validator('is_housing_led', mode='before')
	@classmethod
	def none_is_false(cls, v):
		return False if v is None else v


class ProcessInfo(ArtifactModel):
	stage: Optional[str] = None
	steps: List[str] = Field(default_factory=list)


class PlanningAuthorityFee(ArtifactModel):
	amount: Optional[float] = None
	currency: Literal["GBP"] = "GBP"
	payer: Optional[str] = None
	description: Optional[str] = None

	@field_validator('amount', mode='before')
	@classmethod
	def clean_amount(cls, v):
		return _coerce_amount(v)

	@field_validator('currency', mode='before')
	@classmethod
	def default_currency(cls, v):
		return _coerce_currency(v)


class AgentFee(ArtifactModel):
	amount: Optional[float] = None
	currency: Literal["GBP"] = "GBP"
	vat_excluded: bool = True
	description: Optional[str] = None

	@field_validator('amount', mode='before')
	@classmethod
	def clean_amount(cls, v):
		return _coerce_amount(v)

	@field_validator('currency', mode='before')
	@classmethod
	def default_currency(cls, v):
		return _coerce_currency(v)

	@field_validator('vat_excluded', mode='before')
	@classmethod
	def none_is_true(cls, v):
		return True if v is None else v


class FeesInfo(ArtifactModel):
	planning_authority_fee: PlanningAuthorityFee = Field(default_factory=PlanningAuthorityFee)
	agent_fee: AgentFee = Field(default_factory=AgentFee)


class DocumentMeta(ArtifactModel):
	document_title: Optional[str] = None
	document_date: Optional[str] = None
	source_file_name: Optional[str] = None


class PlanningDocumentSummary(ArtifactModel):
	# Every top-level key must be present; null is accepted and means unknown
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

	site: SiteInfo
	proposal: ProposalInfo
	process: ProcessInfo
	fees: FeesInfo
	documents_required: List[str]
	meta: DocumentMeta

	@field_validator('site', 'proposal', 'process', 'fees', 'meta', mode='before')
	@classmethod
	def null_objects_to_empty(cls, v):
		return {} if v is None else v


class RiskLevel(str, Enum):
	LOW = "LOW"
	MEDIUM = "MEDIUM"
	HIGH = "HIGH"
	EXTREME = "EXTREME"


class PlanningDocumentAnalysis(ArtifactModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

	headline_risk: Optional[str]
	risk_level: Optional[RiskLevel]
	key_issues: List[str]
	policy_refs: List[str]
	recommended_actions: List[str]
	timeline_notes: Optional[str]

	@field_validator('risk_level', mode='before')
	@classmethod
	def normalise_risk_level(cls, v):
		if isinstance(v, str):
			return v.strip().upper() or None
		return v


# Read models served by the status endpoints

class PlanningDocumentRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	job_id: Optional[str] = None
	site_id: str
	file_name: str
	summary: PlanningDocumentSummary
	created_at: datetime


class PlanningDocumentAnalysisRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	planning_document_id: str
	analysis: PlanningDocumentAnalysis
	created_at: datetime


class PlanningDocumentListItem(BaseModel):
	id: str
	title: str
	route_label: Optional[str] = None
	created_at: datetime


class PlanningDocumentViewType(str, Enum):
	SUMMARY = "summary"
	PROCESS = "process"
	FEES = "fees"
	ANALYSIS = "analysis"


class SummaryView(BaseModel):
	title: str
	bullets: List[str]


class CompareDocument(BaseModel):
	document_id: str
	title: str
	route_label: Optional[str] = None
	site_address: Optional[str] = None
	proposal_summary: Optional[str] = None
	phase_one_fee_summary: Optional[str] = None


class ComparisonRow(BaseModel):
	label: str
	values: List[Optional[str]]


class PlanningDocumentComparison(BaseModel):
	documents: List[CompareDocument]
	comparison_rows: List[ComparisonRow]
