"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI

from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from rest_api.core import configure_cors, lifespan
from rest_api.routers.public import health_router
from rest_api.routers.tables import router as tables_router
from rest_api.routers.orders import router as orders_router
from rest_api.routers.kitchen import router as kitchen_router
from rest_api.routers.inventory import router as ingredients_router
from rest_api.routers.reports import router as reports_router


app = FastAPI(
    title="Order Ledger REST API",
    description="Restaurant order, kitchen, inventory and sales ledger API",
    version="0.1.0",
    lifespan=lifespan,
)

configure_cors(app)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(tables_router)
app.include_router(orders_router)
app.include_router(kitchen_router)
app.include_router(ingredients_router)
app.include_router(reports_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=True,
    )
