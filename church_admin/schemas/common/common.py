# church_admin/schemas/common/common.py
from pydantic import BaseModel
from typing import List, Dict, Any, Optional

class ErrorResponse(BaseModel):
    success: bool = False
    data: None = None
    error: str
    details: Dict[str, Any] = {}

class MessageResponse(BaseModel):
    message: str

class IdResponse(BaseModel):
    id: str

class CurrentUser(BaseModel):
    uid: str
    name: Optional[str] = None
    email: Optional[str] = None
    claims: Dict[str, Any] = {}
