"""Pydantic models for API requests and responses.

Request models accept the camelCase keys clients send (``jsonData``,
``mappingConfig``...) and expose snake_case attributes in Python.
Unknown keys are ignored.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from excel_generation_api.services.styling import StyleSpec
from excel_generation_api.utils.exceptions import ErrorCode

CELL_REFERENCE_REGEX = r"^[A-Z]+[0-9]+$"
HEX_COLOR_REGEX = r"^[0-9A-Fa-f]{6}$"
DEFAULT_FILE_NAME = "generated.xlsx"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Request models
# =============================================================================


class DeliveryMode(str, Enum):
    """How a generated workbook is handed back to the caller."""

    DOWNLOAD = "download"
    EMAIL = "email"
    BASE64 = "base64"


class CellStyle(CamelModel):
    """Visual style for a mapped cell."""

    bg_color: str | None = Field(
        default=None,
        pattern=HEX_COLOR_REGEX,
        description="Background color in hex (without #)",
    )
    font_color: str | None = Field(
        default=None,
        pattern=HEX_COLOR_REGEX,
        description="Font color in hex (without #)",
    )
    font_size: float | None = Field(default=None, ge=8, le=72, description="Font size")
    bold: bool | None = Field(default=None, description="Bold text")
    italic: bool | None = Field(default=None, description="Italic text")
    underline: bool | None = Field(default=None, description="Underline text")


class CellMapping(CamelModel):
    """One field-to-cell assignment plus optional style, format and formula."""

    sheet: str = Field(..., min_length=1, description="Sheet name")
    cell: str = Field(
        ...,
        pattern=CELL_REFERENCE_REGEX,
        description="Cell reference (e.g., A1, B2)",
    )
    field_name: str = Field(..., min_length=1, description="JSON field path to map")
    style: CellStyle | None = None
    formula: str | None = Field(
        default=None, description="Excel formula (e.g., SUM(A1:A10))"
    )
    format: str | None = Field(
        default=None, description="Cell format (e.g., currency, percentage)"
    )

    def to_style_spec(self) -> StyleSpec:
        """Fold the style block and number format into one StyleSpec."""
        style = self.style or CellStyle()
        return StyleSpec(
            bg_color=style.bg_color,
            font_color=style.font_color,
            font_size=style.font_size,
            bold=style.bold,
            italic=style.italic,
            underline=style.underline,
            number_format=self.format or None,
        )


class TableStyle(CamelModel):
    """Header and row colors for a generated table."""

    header_bg_color: str | None = Field(default=None, pattern=HEX_COLOR_REGEX)
    header_font_color: str | None = Field(default=None, pattern=HEX_COLOR_REGEX)
    row_bg_color: str | None = Field(default=None, pattern=HEX_COLOR_REGEX)
    alternate_row_bg_color: str | None = Field(default=None, pattern=HEX_COLOR_REGEX)


class TableConfig(CamelModel):
    """A named, styled rectangular block for tabular data."""

    sheet: str = Field(..., min_length=1, description="Sheet name")
    table_name: str = Field(..., min_length=1, description="Table name")
    start_cell: str = Field(
        ...,
        pattern=CELL_REFERENCE_REGEX,
        description="Starting cell for table",
    )
    columns: list[str] = Field(..., min_length=1, description="Column headers")
    style: TableStyle | None = None


class ExcelOptions(CamelModel):
    """Per-sheet options applied after mappings and tables are written."""

    include_headers: bool = True
    auto_fit_columns: bool = True
    freeze_first_row: bool = False
    protect_sheet: bool = False
    password: str | None = None


class ExcelRequest(CamelModel):
    """A single workbook generation request."""

    json_data: dict[str, Any] = Field(
        ..., description="JSON data to be mapped to Excel"
    )
    mapping_config: list[CellMapping] = Field(
        ..., min_length=1, description="Array of mapping configurations"
    )
    tables: list[TableConfig] = Field(
        default_factory=list, description="Table configurations"
    )
    mode: DeliveryMode = Field(default=DeliveryMode.DOWNLOAD, description="Output mode")
    email_address: EmailStr | None = Field(
        default=None, description="Email address (required for email mode)"
    )
    file_name: str = Field(
        default=DEFAULT_FILE_NAME, min_length=1, description="Output file name"
    )
    options: ExcelOptions = Field(default_factory=ExcelOptions)


# =============================================================================
# Response models
# =============================================================================


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    service: str
    version: str


class ErrorDetail(BaseModel):
    """Error detail model for API error responses.

    This model provides structured error responses with:
    - Human-readable error message
    - Machine-readable error code
    - Optional additional details (e.g. field-level validation errors)
    - Optional request ID for correlation
    """

    detail: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code (e.g., 'E2001')",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details for debugging",
    )
    request_id: str | None = Field(
        default=None,
        description="Request ID for error correlation",
    )

    @classmethod
    def from_error_code(
        cls,
        error_code: ErrorCode,
        detail: str,
        details: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> "ErrorDetail":
        return cls(
            detail=detail,
            error_code=error_code.value,
            details=details,
            request_id=request_id,
        )


class EmailDeliveryDetails(CamelModel):
    recipient: str
    file_name: str
    file_size: str
    timestamp: str


class EmailGenerateResponse(CamelModel):
    """Response for a workbook that was generated and emailed."""

    success: bool = True
    message: str
    details: EmailDeliveryDetails


class InlineFileData(CamelModel):
    file_name: str
    file_size: str
    base64: str


class InlineGenerateResponse(CamelModel):
    """Response for a workbook returned inline as base64."""

    success: bool = True
    message: str
    data: InlineFileData


class SheetSummaryModel(CamelModel):
    name: str
    row_count: int
    column_count: int
    has_data: bool


class TemplateDetailsModel(CamelModel):
    sheets: list[SheetSummaryModel]
    total_sheets: int


class UploadedTemplate(CamelModel):
    file_name: str
    file_size: str
    sheets: list[str]
    details: TemplateDetailsModel
    uploaded_at: str


class TemplateUploadResponse(CamelModel):
    success: bool = True
    message: str
    template: UploadedTemplate


class TemplateValidationResult(CamelModel):
    is_valid: bool
    sheets: list[str]
    details: TemplateDetailsModel
    file_name: str
    file_size: str
    validated_at: str


class TemplateValidationResponse(CamelModel):
    success: bool = True
    message: str
    validation: TemplateValidationResult


class BulkItemResultModel(CamelModel):
    index: int
    success: bool = True
    file_name: str
    file_size: str
    data: str


class BulkItemErrorModel(CamelModel):
    index: int
    error: str


class BulkSummary(CamelModel):
    total: int
    successful: int
    failed: int
    timestamp: str


class BulkResponse(CamelModel):
    """Per-item outcome of a bulk generation run."""

    success: bool = True
    message: str
    results: list[BulkItemResultModel]
    errors: list[BulkItemErrorModel]
    summary: BulkSummary
