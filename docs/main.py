"""
Service Discovery / Documentation Service
Provides a single entry point to discover all Safe Route microservices.
"""

# Run:
# uvicorn docs.main:app --host 0.0.0.0 --port 8080 --reload

from common.constants import SERVICES
from libs.fastapi_service import FastAPIServiceFactory, ServiceAppConfig

# Create service configuration
service_config = ServiceAppConfig(
    title="Safe Route Services Discovery",
    description="Service discovery and documentation endpoint for all Safe Route microservices.",
    service_name="service_discovery",
    enable_metrics=False,  # This is just a discovery endpoint
)

# Create factory and build app
factory = FastAPIServiceFactory(service_config)
app = factory.create_app()


def service_docs(host: str = "127.0.0.1") -> dict:
    return {name: f"http://{host}:{port}/docs" for name, (_, port) in SERVICES.items()}


@app.get("/services")
async def index():
    """Service discovery endpoint - lists all available services."""
    return {
        "services": service_docs(),
        "description": "Safe Route Microservices - Click on any service to view its API documentation",
    }
