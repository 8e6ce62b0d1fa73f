import asyncio

from fastapi import APIRouter, Depends

from shadercross.api.dependencies import get_config
from shadercross.api.schemas import (
    TargetSchema,
    TargetsResponse,
    ToolStatusSchema,
    ToolsResponse,
)
from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.toolchain import probe_toolchain, supported_targets

router = APIRouter(prefix="/api", tags=["toolchain"])


@router.get("/tools", response_model=ToolsResponse)
async def tools(config: ToolchainConfig = Depends(get_config)) -> ToolsResponse:
    """Report identity, version and availability of each external tool."""
    statuses = await asyncio.to_thread(probe_toolchain, config)
    return ToolsResponse(
        tools=[
            ToolStatusSchema(
                tool=s.tool.value,
                path=s.path,
                available=s.available,
                version=s.version,
                error=s.error,
            )
            for s in statuses
        ]
    )


@router.get("/targets", response_model=TargetsResponse)
async def targets(config: ToolchainConfig = Depends(get_config)) -> TargetsResponse:
    return TargetsResponse(
        targets=[
            TargetSchema(id=t.target.value, name=t.name, description=t.description)
            for t in supported_targets(config)
        ]
    )
