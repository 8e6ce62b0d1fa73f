from fastapi import Request

from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.orchestrator import PipelineOrchestrator


def get_config(request: Request) -> ToolchainConfig:
    """Get the configuration the app was created with."""
    config: ToolchainConfig = request.app.state.config
    return config


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    """Get the app-wide orchestrator. It holds no per-request state."""
    orchestrator: PipelineOrchestrator = request.app.state.orchestrator
    return orchestrator
