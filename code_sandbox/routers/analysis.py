from fastapi import APIRouter, Depends

from code_sandbox.analysis.complexity import ComplexityReport
from code_sandbox.execution.service import SandboxService, get_sandbox_service
from code_sandbox.schemas.execution import AnalysisRequest

router = APIRouter()


@router.post("", response_model=ComplexityReport)
async def analyze_code(
    request: AnalysisRequest,
    service: SandboxService = Depends(get_sandbox_service),
):
    """Static complexity metrics; the code is never executed"""
    return service.analyze(request.source_code, request.language)
