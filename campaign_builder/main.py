import logging

from fastapi import FastAPI

from campaign_builder.api import draft_router
from campaign_builder.settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Campaign Builder", version="0.1.0")
app.include_router(draft_router)
