# FastAPI entrypoint for the capability relay

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Dict, Optional
from loguru import logger

from apps.api.middleware import SecurityHeadersMiddleware, StorageAccessLoggingMiddleware
from sharing.config import RelayConfig
from sharing.fetcher import Fetcher
from sharing.issuer import CapabilityIssuer
from sharing.storage_routes import router as storage_router
from storage.object_store.azure_blob import AzureBlobStore

config = RelayConfig()

# Initialize FastAPI app
app = FastAPI(
    title="Storage SAS Relay",
    description="Copies internal blobs into per-request containers and issues read-only SAS URIs",
    version="1.0.0"
)

# ==================== MIDDLEWARE ====================

app.add_middleware(StorageAccessLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

if config.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
        max_age=86400,
    )

# ==================== RESPONSE MODELS ====================

class HealthResponse(BaseModel):
    status: str
    stores: Dict[str, Optional[str]]

# ==================== BASE ROUTER ====================

router = APIRouter(prefix="/api/base", tags=["base"])

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Report which storage accounts the relay is wired to."""
    stores = getattr(app.state, "stores", {})
    return {
        "status": "healthy" if stores else "starting",
        "stores": {label: store.store_id for label, store in stores.items()},
    }

# ==================== ROUTER REGISTRATION ====================

app.include_router(router)              # /api/base
app.include_router(storage_router)      # /api/v{version}/storage

@app.get("/")
async def root():
    """Root endpoint - returns simple welcome message."""
    return {
        "message": "Storage SAS Relay",
        "status": "running",
        "docs_url": "/docs",
        "api_base": "/api/v1.0/storage"
    }

# ==================== STARTUP / SHUTDOWN ====================

@app.on_event("startup")
async def startup_event():
    """Create storage clients and the issuance pipeline."""
    config.validate()

    internal = AzureBlobStore.from_connection_string(config.internal_connection_string, label="internal")
    external = AzureBlobStore.from_connection_string(config.external_connection_string, label="external")

    app.state.stores = {"internal": internal, "external": external}
    app.state.fetcher = Fetcher(internal)
    app.state.issuer = CapabilityIssuer(
        external,
        ip_restriction=config.allowed_ip,
        write_expiry=config.write_expiry,
        read_expiry=config.read_expiry,
        container_prefix=config.container_prefix,
    )
    logger.info("✓ Storage relay initialized")

@app.on_event("shutdown")
async def shutdown_event():
    for label, store in getattr(app.state, "stores", {}).items():
        try:
            await store.close()
        except Exception as e:
            logger.warning(f"Error closing {label} storage client: {e}")
