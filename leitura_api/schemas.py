from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class FilterSelectionModel(BaseModel):
    year: Optional[Union[int, str]] = None
    months: List[str] = Field(default_factory=list)
    company: Optional[str] = None
    technician: Optional[str] = None
    ul_from: Optional[Union[int, str]] = None
    ul_to: Optional[Union[int, str]] = None


class OptionModel(BaseModel):
    value: str
    label: str


class BaseOptionsResponse(BaseModel):
    years: List[OptionModel]
    months: List[OptionModel]


class DependentOptionsResponse(BaseModel):
    companies: List[OptionModel]
    technicians: List[OptionModel]


class ReportInfo(BaseModel):
    id: str
    label: str
    rules: List[str]
    views: List[str]
