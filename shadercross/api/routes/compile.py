import asyncio

from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from shadercross.api.dependencies import get_orchestrator
from shadercross.api.schemas import CompileRequest, CompileResponse, DiagnosticSchema
from shadercross.pipeline.errors import ToolchainUnavailableError, WorkspaceError
from shadercross.pipeline.models import (
    CompilationRequest,
    ExecutionMode,
    SourceLanguage,
    StageId,
    TargetFormat,
)
from shadercross.pipeline.orchestrator import PipelineOrchestrator

router = APIRouter(prefix="/api", tags=["compile"])


def _invalid(body: CompileRequest, message: str) -> CompileResponse:
    return CompileResponse(
        success=False,
        target=body.target,
        mode=body.mode,
        diagnostics=[DiagnosticSchema(message=message)],
        stage=StageId.VALIDATION.value,
        error=message,
    )


def _to_request(body: CompileRequest) -> CompilationRequest | str:
    """Build the pipeline request, or describe the first invalid field."""
    try:
        target = TargetFormat(body.target)
    except ValueError:
        return f"Unsupported target: {body.target}"
    try:
        language = SourceLanguage(body.source_language)
    except ValueError:
        return f"Unsupported source language: {body.source_language}"
    try:
        mode = ExecutionMode(body.mode)
    except ValueError:
        return f"Unsupported mode: {body.mode}"
    return CompilationRequest(
        source_code=body.source,
        source_language=language,
        target_format=target,
        execution_mode=mode,
        clean_export=body.clean_export,
    )


@router.post("/compile", response_model=CompileResponse)
async def compile_shader(
    body: CompileRequest,
    response: Response,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> CompileResponse:
    """Compile a shader fragment.

    Compile failures answer 400 with diagnostics; a missing tool answers 503
    and a workspace failure 500.
    """
    request = _to_request(body)
    if isinstance(request, str):
        logger.warning(request)
        response.status_code = status.HTTP_400_BAD_REQUEST
        return _invalid(body, request)

    try:
        result = await asyncio.to_thread(orchestrator.compile, request)
    except ToolchainUnavailableError as e:
        logger.error(e.message)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message
        ) from e
    except WorkspaceError as e:
        logger.error(e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message
        ) from e

    if not result.succeeded:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return CompileResponse.from_result(result)
