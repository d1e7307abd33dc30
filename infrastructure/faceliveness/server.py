"""
Known-Faces Registry API Server
FastAPI service for face registration, the known-faces snapshot and
server-side descriptor verification.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .face_store import FaceStore
from .matching import match_descriptor
from .schemas import (
    HealthResponse,
    KnownFace,
    RegisterFaceRequest,
    RegisterFaceResponse,
    VerifyFaceRequest,
    VerifyFaceResponse,
)

logger = logging.getLogger(__name__)

# Configuration
MATCH_THRESHOLD = float(os.getenv('MATCH_THRESHOLD', '0.45'))
DESCRIPTOR_DIMENSION = int(os.getenv('DESCRIPTOR_DIMENSION', '128'))


def create_app(store: Optional[FaceStore] = None,
               match_threshold: float = MATCH_THRESHOLD,
               descriptor_dimension: int = DESCRIPTOR_DIMENSION) -> FastAPI:
    """
    Create the registry application.

    Args:
        store: Face store to use; created from REDIS_URL at startup when omitted
        match_threshold: Maximum (exclusive) distance for a verification match
        descriptor_dimension: Required descriptor length; 0 accepts any length
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Initializing Known-Faces Registry API...")
        if getattr(app.state, 'store', None) is None:
            redis_url = os.getenv('REDIS_URL')
            app.state.store = FaceStore(redis_url)
        logger.info(f"Face store backend: {app.state.store.backend}, "
                    f"{app.state.store.count()} known faces")
        try:
            yield
        finally:
            logger.info("Shutting down Known-Faces Registry API...")

    app = FastAPI(
        title="Face Liveness Registry API",
        description="Face enrollment and verification for liveness-checked sessions",
        version=__version__,
        lifespan=lifespan
    )
    app.state.store = store
    app.state.match_threshold = match_threshold
    app.state.descriptor_dimension = descriptor_dimension

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_store(request: Request) -> FaceStore:
        store = request.app.state.store
        if store is None:
            raise HTTPException(status_code=503, detail="Face store not available")
        return store

    def check_dimension(request: Request, descriptor: List[float]) -> None:
        expected = request.app.state.descriptor_dimension
        if expected and len(descriptor) != expected:
            raise HTTPException(
                status_code=400,
                detail=f"Descriptor must have {expected} values, got {len(descriptor)}"
            )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        store = request.app.state.store
        return HealthResponse(
            status="healthy" if store is not None else "degraded",
            version=__version__,
            store_backend=store.backend if store is not None else "none",
            known_faces=store.count() if store is not None else 0,
            match_threshold=request.app.state.match_threshold
        )

    @app.post("/api/register-face", response_model=RegisterFaceResponse)
    async def register_face(payload: RegisterFaceRequest, request: Request):
        """Store the averaged descriptor of a liveness-checked enrollment."""
        store = get_store(request)
        check_dimension(request, payload.descriptor)
        replaced = store.save(payload.username, payload.descriptor)
        message = f"Updated {payload.username}" if replaced else f"Registered {payload.username}"
        return RegisterFaceResponse(success=True, message=message)

    @app.get("/api/known-faces", response_model=List[KnownFace])
    async def known_faces(request: Request):
        return get_store(request).all()

    @app.delete("/api/known-faces/{username}", response_model=RegisterFaceResponse)
    async def delete_known_face(username: str, request: Request):
        if not get_store(request).delete(username):
            raise HTTPException(status_code=404, detail=f"Unknown user: {username}")
        return RegisterFaceResponse(success=True, message=f"Deleted {username}")

    @app.post("/api/verify-face", response_model=VerifyFaceResponse)
    async def verify_face(payload: VerifyFaceRequest, request: Request):
        """Nearest-neighbour verification of a probe descriptor."""
        store = get_store(request)
        check_dimension(request, payload.descriptor)
        result = match_descriptor(payload.descriptor, store.all(), request.app.state.match_threshold)
        if not result.matched:
            return VerifyFaceResponse(success=False, message="Not recognized")
        return VerifyFaceResponse(success=True, username=result.label, distance=result.distance)

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal server error",
                "detail": str(exc) if app.debug else "An unexpected error occurred"
            }
        )

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8000, debug: bool = False):
    """Run the FastAPI server."""
    uvicorn.run(
        "faceliveness.server:app",
        host=host,
        port=port,
        reload=debug,
        log_level="debug" if debug else "info"
    )


if __name__ == "__main__":
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    parser = argparse.ArgumentParser(description="Face Liveness Registry API Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()
    run_server(host=args.host, port=args.port, debug=args.debug)
