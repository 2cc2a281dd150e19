"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crushify import __version__
from crushify.api.routes import router
from crushify.config import CORS_ORIGINS, logger as config_logger

logging.getLogger("uvicorn").setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config_logger.info("Converter API started")
    yield
    config_logger.info("Converter API shutting down")


app = FastAPI(
    title="Crushify Image Converter API",
    description="Convert images between raster formats, singly or by folder, with savings statistics.",
    version=__version__,
    lifespan=lifespan,
)
if CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.include_router(router)


def run() -> None:
    import uvicorn
    from crushify.config import HOST, PORT
    uvicorn.run("crushify.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
