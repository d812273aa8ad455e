from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from shared.database.errors import DatabaseError
from shared.database.pool import ConnectionPool, create_pool, close_pool
from shared.observability.access_log_middleware import AccessLogMiddleware
from shared.observability.logger import configure_logging, get_logger
from shared.observability.middleware import ContextMiddleware
from config.settings import get_settings
from climblog.api import climbs, tutorials, users
from climblog.api.deps import get_db_pool

logger = get_logger("climblog")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the connection pool on startup and drain it on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app.state.db_pool = await create_pool(settings)
    logger.info("Database pool created", data={
        "host": settings.db_host,
        "port": settings.db_port,
        "database": settings.db_name,
        "max_size": settings.db_pool_max_size
    })

    yield

    await close_pool(app.state.db_pool)
    logger.info("Database pool closed")


def register_exception_handlers(app: FastAPI) -> None:
    """Map failures to ``{"error": ...}`` bodies. Details are logged, never returned."""

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error", data={
            "path": request.url.path,
            **exc.to_log_data()
        })
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Database error"}
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unhandled error", data={
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error": str(exc)
        })
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Something went wrong!"}
        )


app = FastAPI(title="Climblog", lifespan=lifespan)
app.add_middleware(ContextMiddleware, service_name="climblog")
app.add_middleware(AccessLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

app.include_router(users.router)
app.include_router(climbs.router)
app.include_router(tutorials.router)


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Server is running!"


@app.get("/health")
def health(pool: ConnectionPool = Depends(get_db_pool)):
    stats = pool.stats()
    logger.info("Health check")
    return {
        "status": "ok" if not stats.closed else "closing",
        "database": stats.to_dict()
    }
