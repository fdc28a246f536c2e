import logging

from fastapi import FastAPI

from env_loader import load_env_once
from settings import Settings
from api import convert_router

app = FastAPI(title="script2extension backend")


@app.on_event("startup")
async def startup() -> None:
    load_env_once()
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


app.include_router(convert_router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
