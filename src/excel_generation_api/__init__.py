"""Excel Generation API - JSON to Excel workbook generation service."""

__version__ = "0.1.0"

from excel_generation_api.api import app, create_app  # noqa: E402

__all__ = ["app", "create_app"]


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from excel_generation_api.config import settings

    uvicorn.run(
        "excel_generation_api.api:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
