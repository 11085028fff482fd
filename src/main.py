"""Entry point for the outbound calling agent bridge."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import router as api_router
from config.logging import configure_logging
from config.settings import get_settings, require_call_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    require_call_settings(get_settings())
    yield


settings = get_settings()

configure_logging(settings.log_level)

app = FastAPI(
    title="Outbound Agent Bridge",
    description="Places outbound calls and bridges their audio to a conversational voice agent.",
    lifespan=lifespan,
)
app.include_router(api_router)


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
