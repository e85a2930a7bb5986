from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from code_sandbox.execution.errors import CodeValidationError, UnsupportedLanguageError
from code_sandbox.execution.models import ExecutionResult
from code_sandbox.execution.service import SandboxService, get_sandbox_service
from code_sandbox.schemas.execution import ExecutionCreate, LanguagesResponse, ValidationErrorResponse

router = APIRouter()


@router.post(
    "",
    response_model=ExecutionResult,
    responses={422: {"model": ValidationErrorResponse}},
)
async def execute_code(
    submission: ExecutionCreate,
    service: SandboxService = Depends(get_sandbox_service),
):
    """Execute a code submission in the sandbox"""
    try:
        return await service.execute(submission.to_request())
    except CodeValidationError as e:
        return JSONResponse(
            status_code=422,
            content={"detail": str(e), "code": e.code.value},
        )
    except UnsupportedLanguageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/languages", response_model=LanguagesResponse)
async def list_languages(service: SandboxService = Depends(get_sandbox_service)):
    """List supported languages"""
    return LanguagesResponse(languages=service.registry.languages())
