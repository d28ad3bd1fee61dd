"""
Guest-facing API routes
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.travel import GuestTravelSubmission, TravelRecordResponse
from app.services.coordination_service import CoordinationService
from app.utils.security import rate_limit_check, get_client_ip
from app.utils.responses import success_response, rate_limit_error

router = APIRouter()

@router.post("/travel")
async def submit_travel_details(
    request: Request,
    submission: GuestTravelSubmission,
    db: Session = Depends(get_db)
):
    """Guest self-service submission of travel details"""
    # Rate limiting
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        rate_limit_error()

    record = CoordinationService.submit_guest_travel(
        db,
        public_code=submission.public_code,
        name=submission.name,
        data=submission
    )

    return success_response(
        message="Thank you! Your travel details have been saved.",
        data=TravelRecordResponse.model_validate(record)
    )
