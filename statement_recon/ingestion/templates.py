"""
Bank layout templates.

A template describes one known statement layout: which header labels to look
for, which columns carry the date and the debit/credit amounts, and the
tolerances that were validated empirically for that document family.
"""

import json
import re
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..config import get_settings

logger = structlog.get_logger()


class LayoutTemplate(BaseModel):
    """Parser configuration for one bank statement layout."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    identifier: str
    bank_name: str = ""
    version: int = 1

    headers: List[str] = Field(min_length=1)
    date_column: str
    date_formats: List[str] = Field(default_factory=lambda: ["%d-%b-%Y"])
    debit_column: str
    credit_column: str
    description_columns: List[str] = Field(default_factory=list)

    # Templates without validated tolerances fall back to the configured defaults
    row_tolerance: float = Field(
        default_factory=lambda: get_settings().default_row_tolerance, gt=0, validate_default=True
    )
    column_tolerance: float = Field(
        default_factory=lambda: get_settings().default_column_tolerance, gt=0, validate_default=True
    )

    date_pattern: str = r"(\d{2}-[A-Za-z]{3}-\d{4})"
    amount_clean_pattern: str = r"[^\d.-]"
    multi_line_description: bool = True

    @field_validator("date_pattern", "amount_clean_pattern")
    @classmethod
    def _must_compile(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression {value!r}: {e}")
        return value

    @model_validator(mode="after")
    def _columns_must_be_headers(self) -> "LayoutTemplate":
        for column in (self.date_column, self.debit_column, self.credit_column):
            if column not in self.headers:
                raise ValueError(f"column {column!r} is not one of the template headers")
        return self

    @property
    def date_regex(self) -> re.Pattern:
        return re.compile(self.date_pattern)

    @property
    def amount_strip_regex(self) -> re.Pattern:
        return re.compile(self.amount_clean_pattern)

    @property
    def min_headers_required(self) -> int:
        return len(self.headers) - 2

    def parse_date(self, text: str) -> Optional[date]:
        """Search the date pattern in a cell and parse the matched text."""
        if not text:
            return None
        match = self.date_regex.search(text.strip())
        if not match:
            return None
        matched = match.group(0)
        for fmt in self.date_formats:
            try:
                return datetime.strptime(matched, fmt).date()
            except ValueError:
                continue
        return None


DBS_PDF_V1 = LayoutTemplate(
    identifier="dbs_pdf_v1",
    bank_name="DBS Bank",
    headers=[
        "Transaction Date",
        "Value Date",
        "Details of transaction",
        "Debit",
        "Credit",
        "Balance",
    ],
    date_column="Transaction Date",
    date_formats=["%d-%b-%Y"],
    debit_column="Debit",
    credit_column="Credit",
    description_columns=["Details of transaction"],
    row_tolerance=5,
    column_tolerance=15,
    date_pattern=r"(\d{2}-[A-Za-z]{3}-\d{4})",
    amount_clean_pattern=r"[^\d.-]",
    multi_line_description=True,
)

BUILTIN_TEMPLATES: Dict[str, LayoutTemplate] = {
    DBS_PDF_V1.identifier: DBS_PDF_V1,
}


def get_template(identifier: str) -> LayoutTemplate:
    """Look up a built-in template by identifier."""
    try:
        return BUILTIN_TEMPLATES[identifier]
    except KeyError:
        raise KeyError(f"Template not found: {identifier}") from None


def load_template_file(path: Union[str, Path]) -> LayoutTemplate:
    """
    Load a template from a JSON file.

    Raises pydantic.ValidationError on a malformed template.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    template = LayoutTemplate.model_validate(data)
    logger.info("Layout template loaded", identifier=template.identifier, path=str(path))
    return template
