from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.core.config import settings
from app.core.logging import configure_logging
from app.api.profiler import router as profiler_router
from app.dependencies import get_profiler
from app.middleware import ProfilerMiddleware

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield

app = FastAPI(
    title=settings.service_name,
    lifespan=lifespan
)

# Profile every request outside the excluded paths
app.add_middleware(
    ProfilerMiddleware,
    profiler=get_profiler(),
    only_exceptions=settings.only_exceptions,
    only_main_requests=settings.only_main_requests,
    collect_parameter=settings.collect_parameter,
    excluded_paths=settings.excluded_paths,
)

app.include_router(profiler_router)

@app.get("/health")
async def health():
    return {"status": "ok", "service": settings.service_name}
