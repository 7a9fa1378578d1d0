from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from dotenv import load_dotenv

from app.routes import account, admin, auth, billing, cron, dashboard, public
from app.routes import cv, jobs, messages, professionals, reviews
from core.database import init_db

# Ensure .env values are loaded even if uvicorn is launched without `dotenv run`.
# override=True so editing `.env` and restarting uvicorn always takes effect.
load_dotenv(override=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Open Job Market", lifespan=lifespan)


app.include_router(public.router)
app.include_router(auth.router)
app.include_router(account.router)
app.include_router(dashboard.router)
app.include_router(jobs.router)
app.include_router(professionals.router)
app.include_router(cv.router)
app.include_router(messages.router)
app.include_router(reviews.router)
app.include_router(billing.router)
app.include_router(admin.router)
app.include_router(cron.router)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    # Leaflet loads from unpkg and map tiles from OpenStreetMap.
    response.headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; img-src 'self' data: https://*.tile.openstreetmap.org https://unpkg.com; "
        "style-src 'self' 'unsafe-inline' https://unpkg.com; script-src 'self' 'unsafe-inline' https://unpkg.com; "
        "font-src 'self' data:; connect-src 'self';",
    )
    return response
