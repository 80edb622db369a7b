"""
API v1 Router Module

All v1 endpoints are prefixed with /api/v1/

- POST /api/v1/lightx/run-tool - Relay a LightX tool run
- GET  /api/v1/metrics         - Prometheus metrics

The run-tool route is also mounted unversioned at /lightx/run-tool
for existing client apps.
"""

from fastapi import APIRouter

from lightx_relay.api.v1.run_tool import router as run_tool_router
from lightx_relay.api.v1.metrics import router as metrics_router

# Main v1 router
api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(run_tool_router, prefix="/lightx", tags=["relay"])
api_v1_router.include_router(metrics_router, tags=["metrics"])
