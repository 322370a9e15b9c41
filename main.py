import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import config
import database
from catalog import albums_router, artists_router, categories_router, songs_router
from errors import CatalogError, ValidationFailed
from logging_setup import configure_logging
from mobile import router as mobile_router
from responses import SERVER_ERROR
from storage import router as storage_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    for directory in (config.PUBLIC_DIR, config.MUSIC_DIR):
        directory.mkdir(parents=True, exist_ok=True)
    if database.db is not None:
        database.ensure_indexes(database.db)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, data endpoints will fail")
    yield


app = FastAPI(title="Musify API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    error = ValidationFailed("Validation failed")
    body = error.to_body()
    body["errors"] = jsonable_errors(exc)
    return JSONResponse(status_code=error.status_code, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content=dict(SERVER_ERROR))


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


app.include_router(artists_router, prefix=f"{config.API_PREFIX}/artists")
app.include_router(albums_router, prefix=f"{config.API_PREFIX}/albums")
app.include_router(songs_router, prefix=f"{config.API_PREFIX}/songs")
app.include_router(categories_router, prefix=f"{config.API_PREFIX}/categories")
app.include_router(mobile_router, prefix=f"{config.API_PREFIX}/mobile")
app.include_router(storage_router, prefix=f"{config.API_PREFIX}/storage")

app.mount(
    config.PUBLIC_URL_PREFIX,
    StaticFiles(directory=str(config.PUBLIC_DIR), check_dir=False),
    name="public",
)


@app.get("/")
def read_root():
    return {"message": "Musify API running"}


@app.get("/test")
def test_database():
    report = {"backend": "running", "database": "not configured", "collections": []}
    if database.db is not None:
        try:
            report["collections"] = database.db.list_collection_names()[:10]
            report["database"] = "connected"
        except Exception as e:
            logger.warning("Database check failed: %s", e)
            report["database"] = "unreachable"
    return report


if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
