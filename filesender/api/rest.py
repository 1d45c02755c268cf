"""
Local REST API for the File Share Client

Design Decision: API Framework
==============================

Decision: FastAPI (same as the rest of the tooling)
- Native async support: the API shares the client's event loop, so it
  reads the catalog and registry without any locking
- Pydantic models for responses
- Automatic OpenAPI documentation at /docs

The API is a control surface for scripts and local frontends; it never
touches the WebSocket directly, only the client's request methods.
"""

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .. import __version__
from ..client import FileShareClient

logger = logging.getLogger(__name__)


# === Pydantic Models ===

class SessionStatus(BaseModel):
    """Session status response."""
    phase: str
    client_name: str
    client_version: str
    client_id: Optional[int] = None
    server_name: Optional[str] = None
    server_version: Optional[str] = None


class CatalogFile(BaseModel):
    """A file offered by the host."""
    file_id: int
    file_name: str
    file_size: int
    chunk_size: int
    chunk_count: int


class TransferInfo(BaseModel):
    """An active transfer."""
    handle_id: int
    file_id: Optional[int] = None
    file_name: str
    file_size: int
    chunk_count: int
    received_chunks: int
    bytes_received: int
    progress_percent: float
    phase: str
    path: str


# === API Creation ===

def create_app(client: FileShareClient) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        client: FileShareClient instance to control

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="File Share Client API",
        description="Local control API for a file sharing client session",
        version=__version__,
    )

    def require_session():
        if not client.is_authenticated:
            raise HTTPException(status_code=503, detail="Not logged in to a host")

    # === Endpoints ===

    @app.get("/", tags=["General"])
    async def root():
        """API root - basic info."""
        return {
            "name": "File Share Client",
            "version": __version__,
            "status": client.session.phase.value,
        }

    @app.get("/status", response_model=SessionStatus, tags=["Session"])
    async def get_status():
        """Get session status."""
        return SessionStatus(**client.session.to_dict())

    @app.get("/stats", tags=["Session"])
    async def get_stats():
        """Get detailed client statistics."""
        return client.get_stats()

    # === Catalog ===

    @app.get("/files", response_model=List[CatalogFile], tags=["Files"])
    async def list_files():
        """List the files the host offers (last snapshot)."""
        return [
            CatalogFile(file_id=file_id, **descriptor.model_dump())
            for file_id, descriptor in sorted(client.files.items())
        ]

    @app.post("/files/refresh", tags=["Files"])
    async def refresh_files():
        """Ask the host for a fresh file list."""
        require_session()
        client.request_file_list_update()
        return {"success": True}

    @app.post("/files/{file_id}/download", tags=["Files"])
    async def download_file(file_id: int):
        """Ask the host to send a file."""
        require_session()
        descriptor = client.catalog.get(file_id)
        if descriptor is None:
            raise HTTPException(status_code=404, detail=f"Unknown file id: {file_id}")

        logger.info(f"Download request for {descriptor.file_name} (file {file_id})")
        client.download_file(file_id)
        return {"success": True, "file_id": file_id, "file_name": descriptor.file_name}

    # === Transfers ===

    @app.get("/transfers", response_model=List[TransferInfo], tags=["Transfers"])
    async def list_transfers():
        """List active transfers."""
        return [TransferInfo(**h.to_dict()) for h in client.transfers.get_active()]

    @app.get("/transfers/{handle_id}", response_model=TransferInfo, tags=["Transfers"])
    async def get_transfer(handle_id: int):
        """Get one active transfer."""
        handle = client.transfers.get(handle_id)
        if handle is None:
            raise HTTPException(status_code=404, detail="Transfer not found")
        return TransferInfo(**handle.to_dict())

    return app


async def run_api_server(client: FileShareClient, host: str = "127.0.0.1", port: int = 8080):
    """
    Run the API server.

    Args:
        client: FileShareClient instance
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    app = create_app(client)

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()
