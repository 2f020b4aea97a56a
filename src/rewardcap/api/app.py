import uvicorn
from fastapi import FastAPI

from rewardcap.api.routes.health import router as health_router
from rewardcap.api.routes.rewards import router as rewards_router
from rewardcap.config import configure_logging, settings

app = FastAPI(title="RewardCap API", version="0.1.0")
app.include_router(health_router)
app.include_router(rewards_router)


def run() -> None:
    configure_logging()
    uvicorn.run("rewardcap.api.app:app", host=settings.app_host, port=settings.app_port, reload=False)
