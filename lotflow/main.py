from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.routers import lots, uploads
from .app_logging import configure_logging
from .bootstrap import Pipeline, build_pipeline

configure_logging()


def create_app(pipeline: Optional[Pipeline] = None) -> FastAPI:
  @asynccontextmanager
  async def lifespan(app: FastAPI):
    owned = getattr(app.state, "pipeline", None) is None
    if owned:
      app.state.pipeline = build_pipeline()
    try:
      yield
    finally:
      if owned:
        app.state.pipeline.shutdown()

  app = FastAPI(title="Lotflow Pipeline", version="0.1.0", lifespan=lifespan)
  if pipeline is not None:
    app.state.pipeline = pipeline

  app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
  )

  api_router = APIRouter(prefix="/api")
  api_router.include_router(uploads.router)
  api_router.include_router(lots.router)
  app.include_router(api_router)

  @app.get("/health")
  def health() -> dict:
    return {"status": "ok"}

  return app


app = create_app()
