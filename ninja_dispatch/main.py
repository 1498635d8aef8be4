from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ninja_dispatch.config import load_webhook_events
from ninja_dispatch.dependencies import get_service
from ninja_dispatch.routers.tracking import router as tracking_router
from ninja_dispatch.routers.webhooks import build_webhook_router

app = FastAPI(title="Ninja Dispatch")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tracking_router)
app.include_router(build_webhook_router(get_service, load_webhook_events()))


@app.get("/")
async def root():
    return {"status": "ONLINE", "engine": "Ninja Dispatch"}
