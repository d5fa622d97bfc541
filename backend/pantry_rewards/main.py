from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pantry_rewards.api import auth, pantry, recipes, rewards, donations, notifications, supermarkets, orders
from pantry_rewards.core.config import settings
from pantry_rewards.core.exceptions import AppError
from pantry_rewards.models.database import Base, engine
import logging

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create missing tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")

    yield

    engine.dispose()
    logger.info("Database connections closed")

app = FastAPI(
    title="Pantry Rewards API",
    description="Food storage, pantry-based recipe recommendations, rewards and supermarket pickup orders",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(pantry.router, prefix="/api")
app.include_router(recipes.router, prefix="/api")
app.include_router(rewards.router, prefix="/api")
app.include_router(donations.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(supermarkets.router, prefix="/api")
app.include_router(orders.router, prefix="/api")


@app.get("/")
def root():
    return {
        "name": "Pantry Rewards API",
        "version": "1.0.0",
        "status": "operational"
    }

@app.get("/health")
def health_check():
    return {"status": "healthy"}
