"""
Public API routes - no authentication required
"""

from fastapi import APIRouter
from fastapi.responses import Response

from app.services.manifest_file_service import ManifestFileService

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/template/flight_manifest_template.xlsx")
async def download_manifest_template():
    """Download the flight manifest template for travel agents"""
    template_bytes = ManifestFileService.create_template()

    return Response(
        content=template_bytes,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=flight_manifest_template.xlsx"}
    )
