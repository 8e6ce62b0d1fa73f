"""Request and response bodies of the HTTP API."""

from pydantic import BaseModel, ConfigDict, Field

from shadercross.pipeline.models import CompilationResult, Diagnostic


class CompileRequest(BaseModel):
    """POST /api/compile body.

    Enum-valued fields are plain strings so that unknown values are answered
    as compile failures rather than schema errors.
    """

    model_config = ConfigDict(populate_by_name=True)

    source: str = ""
    source_language: str = Field(default="slang", alias="sourceLanguage")
    target: str = "glsl"
    mode: str = "materialLibrary"
    clean_export: bool = Field(default=False, alias="cleanExport")


class DiagnosticSchema(BaseModel):
    message: str
    line: int | None = None
    severity: str = "error"
    code: str | None = None

    @classmethod
    def from_diagnostic(cls, diagnostic: Diagnostic) -> "DiagnosticSchema":
        return cls(
            message=diagnostic.message,
            line=diagnostic.line,
            severity=diagnostic.severity.value,
            code=diagnostic.code,
        )


class CompileResponse(BaseModel):
    """POST /api/compile result.

    ``code`` holds the artifact; ``encoding`` is ``base64`` for SPIR-V.
    On failure ``error`` repeats the first diagnostic message.
    """

    success: bool
    code: str | None = None
    encoding: str | None = None
    target: str | None = None
    mode: str | None = None
    diagnostics: list[DiagnosticSchema] = Field(default_factory=list)
    stage: str | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: CompilationResult) -> "CompileResponse":
        diagnostics = [DiagnosticSchema.from_diagnostic(d) for d in result.diagnostics]
        target = result.target_format.value if result.target_format else None
        mode = result.execution_mode.value if result.execution_mode else None
        if not result.succeeded:
            return cls(
                success=False,
                target=target,
                mode=mode,
                diagnostics=diagnostics,
                stage=result.failed_stage.value if result.failed_stage else None,
                error=diagnostics[0].message if diagnostics else None,
            )
        if result.artifact_base64 is not None:
            code, encoding = result.artifact_base64, "base64"
        else:
            code, encoding = result.artifact_text, "text"
        return cls(
            success=True,
            code=code,
            encoding=encoding,
            target=target,
            mode=mode,
            diagnostics=diagnostics,
        )


class HealthResponse(BaseModel):
    status: str = "ok"


class ToolStatusSchema(BaseModel):
    tool: str
    path: str
    available: bool
    version: str | None = None
    error: str | None = None


class ToolsResponse(BaseModel):
    tools: list[ToolStatusSchema]


class TargetSchema(BaseModel):
    id: str
    name: str
    description: str


class TargetsResponse(BaseModel):
    targets: list[TargetSchema]
