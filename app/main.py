# app/main.py
import logging

from fastapi import FastAPI
from sqlalchemy import exc as sa_exc

from app.config import settings
from app.database import engine, Base
from app.models.user import User  # noqa: F401
from app.models.report import DailyReport  # noqa: F401
from app.models.daily_log import DailyLog  # noqa: F401
from app.models.notification import Notification  # noqa: F401
from app.routers import auth, reports, daily_logs, notifications

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Oasis - Daily Report Calendar", version="1.0")

app.include_router(auth.router)
app.include_router(reports.router)
app.include_router(daily_logs.router)
app.include_router(notifications.router)


# Schema is owned by Alembic in production; create_all keeps local runs working
@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logger.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise


@app.get("/")
def read_root():
    return {"message": "Welcome to Oasis Daily Reports"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
