"""FastAPI application for the Excel generation API."""

import asyncio
import base64
import json
import re
import uuid
from datetime import UTC, datetime
from typing import Annotated, Any
from urllib.parse import quote

from fastapi import FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError as FastAPIRequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.datastructures import UploadFile as StarletteUploadFile

from excel_generation_api import __version__
from excel_generation_api.config import settings, validate_settings_on_startup
from excel_generation_api.excel_document import TemplateInfo
from excel_generation_api.models import (
    BulkItemErrorModel,
    BulkItemResultModel,
    BulkResponse,
    BulkSummary,
    DeliveryMode,
    EmailDeliveryDetails,
    EmailGenerateResponse,
    ErrorDetail,
    ExcelRequest,
    HealthResponse,
    InlineFileData,
    InlineGenerateResponse,
    SheetSummaryModel,
    TemplateDetailsModel,
    TemplateUploadResponse,
    TemplateValidationResponse,
    TemplateValidationResult,
    UploadedTemplate,
)
from excel_generation_api.services.bulk_generator import generate_bulk
from excel_generation_api.services.email_service import EmailService
from excel_generation_api.services.request_validation import (
    decode_json_fields,
    field_errors_from_pydantic,
    validate_excel_request,
)
from excel_generation_api.services.template_inspector import TemplateInspector
from excel_generation_api.services.workbook_assembler import generate_workbook
from excel_generation_api.utils.exceptions import (
    ErrorCode,
    ExcelAPIError,
    FieldError,
    FileTooLargeError,
    InvalidJSONError,
    InvalidTemplateError,
    MissingFileError,
    RequestValidationError,
    UnsupportedFormatError,
)
from excel_generation_api.utils.logging import (
    LogContext,
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

# Configure structured logging using settings
configure_logging(
    level=settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)

API_PREFIX = "/api/excel"
SERVICE_NAME = "Excel Generation API"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
ALLOWED_TEMPLATE_MEDIA_TYPES = frozenset(
    {
        XLSX_MEDIA_TYPE,
        "application/vnd.ms-excel",
        "application/octet-stream",
    }
)
ALLOWED_TEMPLATE_EXTENSIONS = (".xlsx", ".xls")
TEMPLATE_FIELD = "template"

CAPABILITIES: dict[str, Any] = {
    "fileFormats": [".xlsx", ".xls"],
    "features": [
        "Flexible JSON to Excel mapping",
        "Multiple sheet support",
        "Custom cell styling (colors, fonts, formatting)",
        "Formula support",
        "Table creation from arrays",
        "Template-based generation",
        "Download, email and base64 delivery",
        "Auto-fit columns",
        "Sheet protection",
        "Freeze panes",
        "Bulk generation",
    ],
    "styling": {
        "supportedColors": "Hex colors (6-digit format)",
        "fontSizes": "8-72 points",
        "fontStyles": ["bold", "italic", "underline"],
        "cellFormats": [
            "currency",
            "percentage",
            "date",
            "datetime",
            "number",
            "integer",
            "custom",
        ],
    },
}

ENDPOINTS: dict[str, str] = {
    "generate": f"POST {API_PREFIX}/generate",
    "download": f"POST {API_PREFIX}/download",
    "email": f"POST {API_PREFIX}/email",
    "uploadTemplate": f"POST {API_PREFIX}/upload-template",
    "validateTemplate": f"POST {API_PREFIX}/validate-template",
    "bulk": f"POST {API_PREFIX}/bulk",
    "examples": f"GET {API_PREFIX}/examples",
}

EXAMPLES: dict[str, Any] = {
    "basicGeneration": {
        "url": f"{API_PREFIX}/generate",
        "method": "POST",
        "body": {
            "jsonData": {
                "name": "John Doe",
                "age": 30,
                "email": "john@example.com",
                "tableData": [
                    ["Laptop", 999.99, 5],
                    ["Mouse", 29.99, 10],
                ],
            },
            "mappingConfig": [
                {
                    "sheet": "Sheet1",
                    "cell": "A1",
                    "fieldName": "name",
                    "style": {"bgColor": "FFFF00", "fontColor": "000000"},
                },
                {
                    "sheet": "Sheet1",
                    "cell": "B1",
                    "fieldName": "age",
                    "formula": "SUM(B4:B10)",
                },
            ],
            "tables": [
                {
                    "sheet": "Sheet1",
                    "tableName": "ProductTable",
                    "startCell": "A3",
                    "columns": ["Product", "Price", "Quantity"],
                }
            ],
            "mode": "download",
        },
    },
    "withTemplate": {
        "url": f"{API_PREFIX}/generate",
        "method": "POST",
        "contentType": "multipart/form-data",
        "formData": {
            "template": "Excel file",
            "jsonData": '{"name": "Jane Doe", "company": "ABC Corp"}',
            "mappingConfig": '[{"sheet": "Sheet1", "cell": "A1", "fieldName": "name"}]',
            "mode": "email",
            "emailAddress": "jane@example.com",
        },
    },
    "emailGeneration": {
        "url": f"{API_PREFIX}/email",
        "method": "POST",
        "body": {
            "jsonData": {"name": "Alice", "department": "Engineering"},
            "mappingConfig": [
                {
                    "sheet": "Report",
                    "cell": "A1",
                    "fieldName": "name",
                    "style": {"bgColor": "E6F3FF", "fontColor": "0066CC"},
                }
            ],
            "emailAddress": "alice@company.com",
        },
    },
}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def format_file_size(size_bytes: int) -> str:
    """Render a byte count the way clients display it ("12 KB")."""
    return f"{int(size_bytes / 1024 + 0.5)} KB"


def content_disposition(file_name: str) -> str:
    """Attachment header with an ASCII fallback name and an RFC 5987 UTF-8 name."""
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "_", file_name)
    encoded = quote(file_name, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


def _camel_json(
    model: BaseModel, status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", by_alias=True),
    )


def _template_details(info: TemplateInfo) -> TemplateDetailsModel:
    return TemplateDetailsModel(
        sheets=[
            SheetSummaryModel(
                name=sheet.name,
                row_count=sheet.row_count,
                column_count=sheet.column_count,
                has_data=sheet.has_data,
            )
            for sheet in info.sheets
        ],
        total_sheets=info.total_sheets,
    )


async def read_template_upload(upload: StarletteUploadFile | None) -> bytes:
    """Check an uploaded template's type and size and return its bytes.

    Raises:
        MissingFileError: If no file was uploaded.
        UnsupportedFormatError: If the file is not an Excel workbook.
        FileTooLargeError: If the file exceeds the configured ceiling.
    """
    if upload is None or not upload.filename:
        raise MissingFileError()

    file_name = upload.filename
    content_type = upload.content_type or ""
    if content_type not in ALLOWED_TEMPLATE_MEDIA_TYPES and not (
        file_name.lower().endswith(ALLOWED_TEMPLATE_EXTENSIONS)
    ):
        logger.warning(
            "Rejected template upload",
            file_name=file_name,
            content_type=content_type,
        )
        raise UnsupportedFormatError(content_type=content_type, file_name=file_name)

    content = await upload.read()
    if len(content) > settings.max_file_size_bytes:
        logger.warning(
            "Template too large",
            file_size=len(content),
            max_size=settings.max_file_size_bytes,
        )
        raise FileTooLargeError(
            file_size=len(content),
            max_size=settings.max_file_size_bytes,
            file_name=file_name,
        )
    return content


async def read_generate_payload(
    request: Request,
) -> tuple[Any, StarletteUploadFile | None]:
    """Decode a generate body sent as JSON or as a multipart form.

    In multipart requests the JSON fields arrive as strings and the optional
    template arrives as the ``template`` file field.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload: StarletteUploadFile | None = None
        payload: dict[str, Any] = {}
        for key, value in form.multi_items():
            if isinstance(value, StarletteUploadFile):
                if key == TEMPLATE_FIELD:
                    upload = value
                continue
            payload[key] = value
        return decode_json_fields(payload), upload

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Invalid JSON request body", error=str(e))
        raise InvalidJSONError(details={"parse_error": str(e)}) from e
    return body, None


def create_app(email_service: EmailService | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=SERVICE_NAME,
        description=(
            "Generate Excel workbooks from JSON data using flexible cell "
            "mappings, tables and templates, delivered by download, email "
            "or base64."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.email_service = email_service or EmailService()
    inspector = TemplateInspector()

    # Configure CORS using settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    validate_settings_on_startup(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it in logs and the response headers."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(ExcelAPIError)
    async def excel_api_exception_handler(
        request: Request, exc: ExcelAPIError
    ) -> JSONResponse:
        """Convert application errors into structured error responses."""
        request_id = getattr(request.state, "request_id", get_request_id())
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(
            f"Request failed: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=ErrorDetail(
                detail=exc.message,
                error_code=exc.error_code.value,
                details=exc.details if exc.details else None,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(FastAPIRequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: FastAPIRequestValidationError
    ) -> JSONResponse:
        """Render FastAPI parameter validation errors like our own."""
        errors = [
            FieldError(
                field=".".join(str(part) for part in error["loc"]),
                message=error["msg"],
            )
            for error in exc.errors()
        ]
        return await excel_api_exception_handler(
            request, RequestValidationError(errors=errors)
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                detail=str(exc.detail),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all handler that hides internals outside debug mode."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if settings.debug:
            detail = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            detail = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail.from_error_code(
                ErrorCode.INTERNAL_ERROR, detail, request_id=request_id
            ).model_dump(exclude_none=True),
        )

    async def deliver(excel_request: ExcelRequest, content: bytes) -> Response:
        """Hand the generated workbook back according to the request mode."""
        file_name = excel_request.file_name

        if excel_request.mode == DeliveryMode.DOWNLOAD:
            logger.log_generation_result(
                file_name, "download", success=True, size_bytes=len(content)
            )
            return Response(
                content=content,
                media_type=XLSX_MEDIA_TYPE,
                headers={"Content-Disposition": content_disposition(file_name)},
            )

        if excel_request.mode == DeliveryMode.EMAIL:
            # Guaranteed by request validation.
            assert excel_request.email_address is not None
            recipient = str(excel_request.email_address)
            email_service: EmailService = app.state.email_service
            await asyncio.to_thread(
                email_service.send_workbook, recipient, content, file_name
            )
            logger.log_generation_result(
                file_name, "email", success=True, size_bytes=len(content)
            )
            return _camel_json(
                EmailGenerateResponse(
                    message="Excel file generated and sent successfully",
                    details=EmailDeliveryDetails(
                        recipient=recipient,
                        file_name=file_name,
                        file_size=format_file_size(len(content)),
                        timestamp=_now_iso(),
                    ),
                )
            )

        logger.log_generation_result(
            file_name, "base64", success=True, size_bytes=len(content)
        )
        return _camel_json(
            InlineGenerateResponse(
                message="Excel file generated successfully",
                data=InlineFileData(
                    file_name=file_name,
                    file_size=format_file_size(len(content)),
                    base64=base64.b64encode(content).decode("ascii"),
                ),
            )
        )

    async def handle_generate(
        request: Request, forced_mode: DeliveryMode | None = None
    ) -> Response:
        payload, upload = await read_generate_payload(request)
        if forced_mode is not None and isinstance(payload, dict):
            payload["mode"] = forced_mode.value

        excel_request = validate_excel_request(payload)
        template = await read_template_upload(upload) if upload else None

        with LogContext(file_name=excel_request.file_name):
            logger.info(
                "Generating workbook",
                mode=excel_request.mode.value,
                mappings=len(excel_request.mapping_config),
                tables=len(excel_request.tables),
                has_template=template is not None,
            )
            content = await asyncio.to_thread(
                generate_workbook,
                excel_request.json_data,
                excel_request.mapping_config,
                excel_request.tables,
                template=template,
                options=excel_request.options,
            )
            return await deliver(excel_request, content)

    generate_responses: dict[int | str, dict[str, Any]] = {
        200: {
            "content": {XLSX_MEDIA_TYPE: {}},
            "description": "Workbook file, or a JSON envelope for email/base64",
        },
        400: {"model": ErrorDetail, "description": "Validation error"},
        413: {"model": ErrorDetail, "description": "Template too large"},
        500: {"model": ErrorDetail, "description": "Generation failed"},
        502: {"model": ErrorDetail, "description": "Email delivery failed"},
    }

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Check the health status of the service."""
        logger.debug("Health check requested")
        return {
            "status": "healthy",
            "timestamp": _now_iso(),
            "service": SERVICE_NAME,
            "version": __version__,
        }

    @app.post(
        f"{API_PREFIX}/generate",
        tags=["Generation"],
        responses=generate_responses,
    )
    async def generate_excel(request: Request) -> Response:
        """Generate a workbook from JSON data and mapping rules.

        Accepts ``application/json`` or ``multipart/form-data``; in the
        latter, JSON fields are sent as strings and an optional ``template``
        file seeds the workbook. ``mode`` selects download (default), email
        or base64 delivery.
        """
        return await handle_generate(request)

    @app.post(
        f"{API_PREFIX}/download",
        tags=["Generation"],
        responses=generate_responses,
    )
    async def download_excel(request: Request) -> Response:
        """Generate a workbook and return it as a file download."""
        return await handle_generate(request, forced_mode=DeliveryMode.DOWNLOAD)

    @app.post(
        f"{API_PREFIX}/email",
        tags=["Generation"],
        responses=generate_responses,
    )
    async def email_excel(request: Request) -> Response:
        """Generate a workbook and email it; ``emailAddress`` is required."""
        return await handle_generate(request, forced_mode=DeliveryMode.EMAIL)

    @app.post(
        f"{API_PREFIX}/upload-template",
        tags=["Templates"],
        responses={
            400: {"model": ErrorDetail, "description": "Missing or invalid template"},
            413: {"model": ErrorDetail, "description": "Template too large"},
        },
    )
    async def upload_template(
        template: Annotated[
            UploadFile | None, File(description="Excel template (.xlsx, .xls)")
        ] = None,
    ) -> JSONResponse:
        """Upload a template and report its sheets."""
        content = await read_template_upload(template)
        assert template is not None and template.filename

        validation = await asyncio.to_thread(inspector.validate, content)
        if not validation.is_valid:
            raise InvalidTemplateError(
                message=validation.error or "Invalid template file",
                file_name=template.filename,
                details={"hint": "Please ensure the file is a valid Excel workbook"},
            )

        info = await asyncio.to_thread(inspector.info, content)
        logger.info(
            "Template uploaded",
            file_name=template.filename,
            sheets=info.total_sheets,
        )
        return _camel_json(
            TemplateUploadResponse(
                message="Template uploaded and validated successfully",
                template=UploadedTemplate(
                    file_name=template.filename,
                    file_size=format_file_size(len(content)),
                    sheets=validation.sheets,
                    details=_template_details(info),
                    uploaded_at=_now_iso(),
                ),
            )
        )

    @app.post(
        f"{API_PREFIX}/validate-template",
        tags=["Templates"],
        responses={
            400: {"model": ErrorDetail, "description": "Template validation failed"},
            413: {"model": ErrorDetail, "description": "Template too large"},
        },
    )
    async def validate_template(
        template: Annotated[
            UploadFile | None, File(description="Excel template (.xlsx, .xls)")
        ] = None,
    ) -> JSONResponse:
        """Validate a template without keeping it."""
        content = await read_template_upload(template)
        assert template is not None and template.filename

        validation = await asyncio.to_thread(inspector.validate, content)
        if not validation.is_valid:
            raise InvalidTemplateError(
                message=validation.error or "Template validation failed",
                file_name=template.filename,
                details={
                    "file_size": format_file_size(len(content)),
                    "validated_at": _now_iso(),
                },
            )

        info = await asyncio.to_thread(inspector.info, content)
        return _camel_json(
            TemplateValidationResponse(
                message="Template is valid and ready to use",
                validation=TemplateValidationResult(
                    is_valid=True,
                    sheets=validation.sheets,
                    details=_template_details(info),
                    file_name=template.filename,
                    file_size=format_file_size(len(content)),
                    validated_at=_now_iso(),
                ),
            )
        )

    async def service_info(template_id: str | None = None) -> dict[str, Any]:
        email_service: EmailService = app.state.email_service
        email_health = await asyncio.to_thread(email_service.verify_connection)

        info: dict[str, Any] = {
            "service": SERVICE_NAME,
            "version": __version__,
            "capabilities": {
                **CAPABILITIES,
                "limits": {
                    "maxFileSize": f"{settings.max_file_size_mb}MB",
                    "maxSheets": "Unlimited",
                    "maxCells": "Excel limits apply",
                    "maxTableRows": "Memory dependent",
                },
            },
            "emailConfiguration": {
                "configured": email_health.success,
                "status": email_health.message,
            },
            "endpoints": ENDPOINTS,
            "timestamp": _now_iso(),
        }
        if template_id:
            info["templateId"] = template_id
            info["message"] = f"Information for template: {template_id}"
        return info

    @app.get(f"{API_PREFIX}/info", tags=["Info"])
    async def get_excel_info() -> dict[str, Any]:
        """Describe service capabilities and email transport health."""
        return await service_info()

    @app.get(f"{API_PREFIX}/info/{{template_id}}", tags=["Info"])
    async def get_template_excel_info(template_id: str) -> dict[str, Any]:
        """Same as /info, tagged with a template identifier."""
        return await service_info(template_id)

    @app.post(
        f"{API_PREFIX}/bulk",
        tags=["Generation"],
        responses={400: {"model": ErrorDetail, "description": "Invalid bulk request"}},
    )
    async def bulk_generate(request: Request) -> JSONResponse:
        """Generate several workbooks, one per item in ``requests``.

        Items run in order without templates; a failing item is reported in
        ``errors`` and does not stop the batch.
        """
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidJSONError(details={"parse_error": str(e)}) from e

        items = body.get("requests") if isinstance(body, dict) else None
        if not isinstance(items, list) or not items:
            raise RequestValidationError(
                message="Please provide an array of generation requests",
                error_code=ErrorCode.INVALID_BULK_REQUEST,
                errors=[
                    FieldError(
                        field="requests",
                        message="requests must be a non-empty array",
                        value=items,
                    )
                ],
            )

        result = await asyncio.to_thread(generate_bulk, items)
        return _camel_json(
            BulkResponse(
                message=(
                    f"Bulk generation completed. {result.successful} successful, "
                    f"{result.failed} failed."
                ),
                results=[
                    BulkItemResultModel(
                        index=item.index,
                        file_name=item.file_name,
                        file_size=format_file_size(len(item.content)),
                        data=base64.b64encode(item.content).decode("ascii"),
                    )
                    for item in result.results
                ],
                errors=[
                    BulkItemErrorModel(index=error.index, error=error.error)
                    for error in result.errors
                ],
                summary=BulkSummary(
                    total=result.total,
                    successful=result.successful,
                    failed=result.failed,
                    timestamp=_now_iso(),
                ),
            )
        )

    @app.get(f"{API_PREFIX}/examples", tags=["Info"])
    async def get_examples() -> dict[str, Any]:
        """Example request bodies for each generation style."""
        return {
            "examples": EXAMPLES,
            "supportedFeatures": CAPABILITIES["features"],
        }

    logger.info("FastAPI application created successfully")
    return app


# Create the application instance
app = create_app()
