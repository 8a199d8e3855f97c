from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from growth_academy.config import settings
from growth_academy.routes import auth, classes, realtime, results, sessions
from growth_academy.utils.auth_utils import get_context_registry
from growth_academy.utils.logging_config import configure_logging
from growth_academy.utils.websocket_manager import connection_manager

logger = configure_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    registry = app.dependency_overrides.get(get_context_registry, get_context_registry)()
    registry.start_background_tasks()
    connection_manager.start_background_tasks()
    logger.info(f"{settings.app_name} started")
    yield
    connection_manager.stop_background_tasks()
    registry.close_all()
    logger.info(f"{settings.app_name} stopped")

app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Session guard and timed quizzes for the Growth Academy portal",
    lifespan=lifespan,
)

# CORS middleware for cross-origin requests (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with prefixes and tags
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(classes.router, prefix="/classes", tags=["Content"])
app.include_router(sessions.router, prefix="/quizzes", tags=["Quiz Runs"])
app.include_router(results.router, prefix="/results", tags=["Results"])
app.include_router(realtime.router, tags=["Realtime"])

# Root endpoint
@app.get("/")
async def root():
    return {"message": "Welcome to Growth Academy API", "version": app.version}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
