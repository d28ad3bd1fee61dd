"""
Common Pydantic schemas: the response envelope shared by every route
"""

from typing import Any, Optional
from pydantic import BaseModel

class StandardResponse(BaseModel):
    """Standard API response"""
    success: bool
    message: str
    data: Optional[Any] = None

class ErrorResponse(BaseModel):
    """Error envelope; error_code names the domain error, details carries its context"""
    success: bool = False
    message: str
    error_code: Optional[str] = None
    details: Optional[Any] = None
