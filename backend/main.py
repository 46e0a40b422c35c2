"""Virtual Library — Main application entry point."""

from pathlib import Path

from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import LOG_LEVEL
from exceptions import (
    AccessDeniedError,
    ArchiveError,
    DuplicateTitleError,
    EmptyFolderError,
    FolderSetupError,
    InvalidSignatureError,
    LibraryError,
    LinkExpiredError,
    RecordNotFoundError,
    ValidationError,
)
from logging_config import setup_logging
from api.download.controllers.download_controller import router as download_router
from api.files.controllers.files_controller import router as files_router
from api.upload.controllers.upload_controller import router as upload_router

logger = setup_logging("library", LOG_LEVEL)


def alembic_config() -> Config:
    """Alembic config pointing at the bundled migrations package.

    ``alembic.ini`` is optional; the script location is set explicitly so an
    installed package migrates without it.
    """
    import db_migrations

    alembic_cfg = Config(str(Path(__file__).parent / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(Path(db_migrations.__file__).parent))
    return alembic_cfg


def run_migrations():
    """Run Alembic migrations on startup."""
    try:
        command.upgrade(alembic_config(), "head")
    except Exception as e:
        logger.warning("Migration failed, creating tables directly: %s", e)
        from database import init_db

        init_db()


app = FastAPI(title="Virtual Library", version="0.1.0")

# Run database migrations
run_migrations()

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error taxonomy -> HTTP status and machine-readable code
ERROR_RESPONSES: list[tuple[type[LibraryError], int, str]] = [
    (DuplicateTitleError, status.HTTP_409_CONFLICT, "DUPLICATE_TITLE"),
    (ValidationError, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR"),
    (AccessDeniedError, status.HTTP_403_FORBIDDEN, "ACCESS_DENIED"),
    (RecordNotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (EmptyFolderError, status.HTTP_404_NOT_FOUND, "EMPTY_FOLDER"),
    (LinkExpiredError, status.HTTP_410_GONE, "LINK_EXPIRED"),
    (InvalidSignatureError, status.HTTP_403_FORBIDDEN, "INVALID_SIGNATURE"),
    (FolderSetupError, status.HTTP_500_INTERNAL_SERVER_ERROR, "FOLDER_SETUP_FAILED"),
    (ArchiveError, status.HTTP_500_INTERNAL_SERVER_ERROR, "ARCHIVE_FAILED"),
]


def _error_handler(status_code: int, code: str):
    async def handler(request: Request, exc: LibraryError):
        if status_code >= 500:
            logger.error("%s: %s path=%s", code, exc, request.url.path)
        else:
            logger.warning("%s: %s path=%s", code, exc, request.url.path)
        return JSONResponse(status_code=status_code, content={"message": str(exc), "code": code})

    return handler


for exc_class, status_code, code in ERROR_RESPONSES:
    app.add_exception_handler(exc_class, _error_handler(status_code, code))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unexpected error on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Something went wrong, please try again", "code": "INTERNAL_ERROR"},
    )


# Router registration order matters:
# 1. Health check
@app.get("/api/health")
async def health():
    return {"status": "ok"}


# 2. API routers
app.include_router(files_router)
app.include_router(upload_router)

# 3. Downloads, signed links and /download-folder
app.include_router(download_router)
