"""FastAPI application - group plan approval service."""

from fastapi import FastAPI

from backend.app.api.routes.approvals import router as approvals_router
from backend.app.api.routes.groups import router as groups_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router

app = FastAPI(title="Group Plan Approval API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(groups_router, tags=["groups"])
app.include_router(approvals_router, tags=["approval"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Group Plan Approval API", "version": "0.1.0"}
