from fastapi import FastAPI

import shadercross
from shadercross.api.routes.compile import router as compile_router
from shadercross.api.routes.health import router as health_router
from shadercross.api.routes.tools import router as tools_router
from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.orchestrator import PipelineOrchestrator


def create_app(config: ToolchainConfig | None = None) -> FastAPI:
    """Create the HTTP API.

    Args:
        config: Toolchain configuration, read from the environment when None

    Returns:
        The FastAPI application
    """
    config = config or ToolchainConfig.from_env()

    app = FastAPI(
        title="shadercross API",
        description="Cross-compile shader fragments between shading languages.",
        version=shadercross.__version__,
    )
    app.state.config = config
    app.state.orchestrator = PipelineOrchestrator(config)

    app.include_router(health_router)
    app.include_router(compile_router)
    app.include_router(tools_router)

    return app
