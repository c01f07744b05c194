# dealflow/main.py
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dealflow.core.config import settings
from dealflow.core.database import async_session
from dealflow.core.init_db import init_db
from dealflow.core.logging import setup_logging
from dealflow.api import deals, workflows
from dealflow.services.runtime import build_runtime

logger = logging.getLogger(__name__)

app = FastAPI(title="Deal Workflow Automation API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    setup_logging()
    await init_db()

    runtime = build_runtime(
        async_session,
        action_timeout=settings.ACTION_TIMEOUT_SECONDS,
        status_notifications=settings.STATUS_CHANGE_NOTIFICATIONS,
    )
    app.state.workflow_runtime = runtime
    deals.init_deals_api(runtime.emitter)

    logger.info(
        f"Workflow engine ready (action timeout {settings.ACTION_TIMEOUT_SECONDS}s, "
        f"status notifications {'on' if settings.STATUS_CHANGE_NOTIFICATIONS else 'off'})"
    )


@app.on_event("shutdown")
async def shutdown():
    runtime = getattr(app.state, "workflow_runtime", None)
    if runtime is not None:
        logger.info(f"Waiting for {runtime.engine.pending} in-flight workflow events")
        await runtime.drain()


app.include_router(workflows.router)
app.include_router(deals.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
