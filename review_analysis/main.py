import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from .config import LOG_FORMAT, Settings, load_settings
from .db import build_engine, build_sessionmaker, init_db
from .exceptions import IngestionError, NotFoundError
from .inference import InferenceClient, build_transport
from .ingest import decode_rows
from .models import AnalysisItem, BatchItem, StatsResponse, StatusResponse, UploadResponse
from .pipeline import AnalysisQueue, BatchOrchestrator
from .repository import AnalysisRepository, BatchRepository, ReviewRepository
from .stats import StatsProvider

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, client: Optional[InferenceClient] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings.database_url)
        await init_db(engine)
        sessionmaker = build_sessionmaker(engine)

        batches = BatchRepository(sessionmaker)
        analyses = AnalysisRepository(sessionmaker)
        inference = client or InferenceClient(build_transport(settings.inference), settings.inference)
        orchestrator = BatchOrchestrator(
            batches,
            ReviewRepository(sessionmaker),
            analyses,
            inference,
            max_concurrency=settings.analysis_concurrency,
        )
        queue = AnalysisQueue(orchestrator, workers=settings.analysis_workers)
        orchestrator.scheduler = queue.enqueue
        await queue.start()

        app.state.orchestrator = orchestrator
        app.state.queue = queue
        app.state.stats = StatsProvider(batches, analyses)
        app.state.inference = inference
        try:
            yield
        finally:
            await queue.stop()
            await inference.aclose()
            await engine.dispose()

    app = FastAPI(title="LLM Review Analysis", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/reviews/upload", response_model=UploadResponse)
    async def upload_reviews(request: Request, file: UploadFile = File(...)):
        data = await file.read()
        try:
            rows = decode_rows(data)
            batch_id = await request.app.state.orchestrator.create_batch(file.filename or "upload.csv", rows)
        except IngestionError as e:
            logger.warning("Rejected upload %s: %s", file.filename, e)
            raise HTTPException(status_code=400, detail=str(e))
        return UploadResponse(message="Upload successful", batch_id=batch_id)

    @app.get("/api/batches", response_model=list[BatchItem])
    async def list_batches(request: Request, limit: int = 20):
        batches = await request.app.state.stats.list_batches(limit)
        return [BatchItem.model_validate(b) for b in batches]

    @app.get("/api/batches/{batch_id}/status", response_model=StatusResponse)
    async def get_status(batch_id: str, request: Request):
        try:
            status = await request.app.state.stats.get_status(batch_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Batch not found")
        return StatusResponse(batch_id=batch_id, status=status)

    @app.get("/api/dashboard/{batch_id}/stats", response_model=StatsResponse)
    async def get_dashboard_stats(batch_id: str, request: Request):
        try:
            return await request.app.state.stats.get_dashboard_stats(batch_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Batch not found")

    @app.get("/api/dashboard/{batch_id}/reviews", response_model=list[AnalysisItem])
    async def get_reviews(batch_id: str, request: Request):
        try:
            analyses = await request.app.state.stats.get_analyses(batch_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Batch not found")
        return [AnalysisItem.model_validate(a) for a in analyses]

    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "ok",
            "queue": request.app.state.queue.snapshot(),
            "inference": dict(request.app.state.inference.stats),
        }

    return app
