from fastapi import FastAPI

from .routes import jobs, subtitles


def create_app() -> FastAPI:
    app = FastAPI(title="Subtitle Translator Service")

    app.include_router(jobs.router, prefix="/api")
    app.include_router(subtitles.router, prefix="/api")

    return app
