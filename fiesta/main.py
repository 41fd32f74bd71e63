import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from fiesta.errors import register_error_handlers
from fiesta.realtime.active_users import active_users
from fiesta.routes import (
    announcement,
    auth,
    budget,
    committee,
    dashboard,
    food,
    match,
    player,
    realtime,
    team,
    tournament,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "1000"))
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() not in ("0", "false", "no")

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{RATE_LIMIT_PER_MINUTE}/minute"],
    enabled=RATE_LIMIT_ENABLED,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Cricket Fiesta API")
    yield
    await active_users.close()
    logger.info("Cricket Fiesta API stopped")


# Create FastAPI app
app = FastAPI(title="Cricket Fiesta API", lifespan=lifespan)

origins = [
    os.getenv("FRONTEND_URL", "http://localhost:5173"),
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
register_error_handlers(app)

app.include_router(auth.router, prefix="/api")
app.include_router(tournament.router, prefix="/api")
app.include_router(match.router, prefix="/api")
app.include_router(team.router, prefix="/api")
app.include_router(player.router, prefix="/api")
app.include_router(committee.router, prefix="/api")
app.include_router(food.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(budget.router, prefix="/api")
app.include_router(announcement.router, prefix="/api")
app.include_router(realtime.router)


@app.get("/health")
def health():
    return {"status": "ok"}
