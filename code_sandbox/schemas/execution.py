from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from code_sandbox.execution.models import ExecutionRequest


class ExecutionCreate(BaseModel):
    """Submit code for execution"""
    user_id: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)
    source_code: str
    stdin: Optional[str] = None
    timeout_ms: Optional[int] = Field(None, gt=0)
    memory_limit_mb: Optional[int] = Field(None, gt=0)
    session_id: Optional[str] = None

    def to_request(self) -> ExecutionRequest:
        return ExecutionRequest(**self.model_dump())


class AnalysisRequest(BaseModel):
    """Static complexity analysis request"""
    source_code: str
    language: str = "javascript"


class LanguagesResponse(BaseModel):
    languages: List[str]


class ValidationErrorResponse(BaseModel):
    detail: str
    code: str


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    checks: Dict[str, bool]
