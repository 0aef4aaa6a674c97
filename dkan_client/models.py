"""DCAT-US, data dictionary, harvest and revision models plus result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

AccessLevel = Literal["public", "restricted public", "non-public"]
WorkflowState = Literal["draft", "published", "hidden", "archived", "orphaned"]
DataDictionaryFieldType = Literal[
    "string",
    "number",
    "integer",
    "boolean",
    "object",
    "array",
    "any",
    "date",
    "time",
    "datetime",
    "year",
    "yearmonth",
    "duration",
]


class DkanModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Reference(BaseModel):
    """``{identifier, data}`` envelope sent when ``show-reference-ids`` is requested."""

    model_config = ConfigDict(extra="forbid")

    identifier: str
    data: Any


class Publisher(DkanModel):
    name: str
    type_: Optional[str] = Field(default=None, alias="@type")
    sub_organization_of: Optional["Publisher"] = Field(default=None, alias="subOrganizationOf")


class ContactPoint(DkanModel):
    type_: str = Field(default="vcard:Contact", alias="@type")
    fn: str
    has_email: str = Field(alias="hasEmail")


class Distribution(DkanModel):
    type_: str = Field(alias="@type")
    identifier: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    format: Optional[str] = None
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    download_url: Optional[str] = Field(default=None, alias="downloadURL")
    access_url: Optional[str] = Field(default=None, alias="accessURL")
    described_by: Optional[str] = Field(default=None, alias="describedBy")
    described_by_type: Optional[str] = Field(default=None, alias="describedByType")


class Dataset(DkanModel):
    identifier: str
    title: str
    description: str
    access_level: AccessLevel = Field(alias="accessLevel")
    modified: str
    keyword: Optional[List[Union[str, Reference]]] = None
    theme: Optional[List[Union[str, Reference]]] = None
    publisher: Optional[Union[Publisher, Reference]] = None
    contact_point: Optional[ContactPoint] = Field(default=None, alias="contactPoint")
    distribution: Optional[List[Union[Distribution, Reference]]] = None
    spatial: Optional[str] = None
    temporal: Optional[str] = None
    license: Optional[str] = None
    landing_page: Optional[str] = Field(default=None, alias="landingPage")
    accrual_periodicity: Optional[str] = Field(default=None, alias="accrualPeriodicity")
    language: Optional[List[str]] = None
    issued: Optional[str] = None
    described_by: Optional[str] = Field(default=None, alias="describedBy")
    references: Optional[List[str]] = None


class DataDictionaryConstraints(DkanModel):
    required: Optional[bool] = None
    unique: Optional[bool] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = Field(default=None, alias="minLength")
    max_length: Optional[int] = Field(default=None, alias="maxLength")
    enum: Optional[List[Any]] = None
    pattern: Optional[str] = None


class DataDictionaryField(DkanModel):
    name: str
    type: DataDictionaryFieldType
    title: Optional[str] = None
    format: Optional[str] = None
    description: Optional[str] = None
    constraints: Optional[DataDictionaryConstraints] = None


class DataDictionaryIndex(DkanModel):
    fields: List[str]
    type: Optional[Literal["primary", "unique", "index"]] = None


class DataDictionaryData(DkanModel):
    title: Optional[str] = None
    fields: List[DataDictionaryField]
    indexes: Optional[List[DataDictionaryIndex]] = None

    @model_validator(mode="after")
    def _indexes_reference_fields(self) -> "DataDictionaryData":
        names = {f.name for f in self.fields}
        for index in self.indexes or []:
            unknown = [name for name in index.fields if name not in names]
            if unknown:
                raise ValueError(f"Index references unknown fields: {', '.join(unknown)}")
        return self


class DataDictionary(DkanModel):
    identifier: str
    version: Optional[str] = None
    data: DataDictionaryData


class HarvestExtract(DkanModel):
    type: str
    uri: str


class HarvestLoad(DkanModel):
    type: str


class HarvestPlan(DkanModel):
    identifier: str
    extract: HarvestExtract
    transforms: Optional[List[Any]] = None
    load: HarvestLoad


class HarvestRun(DkanModel):
    identifier: str
    status: Optional[str] = None
    extract_status: Optional[Dict[str, Any]] = None
    load_status: Optional[Dict[str, Any]] = None


class MetastoreNewRevision(DkanModel):
    state: WorkflowState
    message: Optional[str] = None


@dataclass(frozen=True)
class ApiResponse:
    data: Any
    status: int
    status_text: str


@dataclass(frozen=True)
class SearchResponse:
    total: int
    results: List[Dict[str, Any]]
    facets: Optional[Any] = None


@dataclass(frozen=True)
class DatasetFacets:
    theme: List[str] = field(default_factory=list)
    keyword: List[str] = field(default_factory=list)
    publisher: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, List[str]]:
        return {"theme": self.theme, "keyword": self.keyword, "publisher": self.publisher}
