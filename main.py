import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from app.config import get_settings, STORAGE_DIR
from app.routers import (
    account_router,
    admin_router,
    ai_router,
    cache_router,
    channels_router,
    hashtags_router,
    jobs_router,
    notifications_router,
    stats_router,
    subtitles_router,
    videos_router,
    watermarks_router,
    workflows_router,
)
from scripts.publish_scheduler import start_scheduler, stop_scheduler

app = FastAPI(title="Crosspost API")

# CORS configuration
app.add_middleware(CORSMiddleware,
    allow_origins=[get_settings().allowed_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded and rendered videos must be publicly reachable (Instagram and Pinterest fetch them by URL)
os.makedirs(STORAGE_DIR, exist_ok=True)
app.mount("/storage", StaticFiles(directory=STORAGE_DIR), name="storage")

app.include_router(channels_router)
app.include_router(videos_router)
app.include_router(ai_router)
app.include_router(hashtags_router)
app.include_router(subtitles_router)
app.include_router(watermarks_router)
app.include_router(workflows_router)
app.include_router(stats_router)
app.include_router(notifications_router)
app.include_router(account_router)
app.include_router(jobs_router)
app.include_router(admin_router)
app.include_router(cache_router)


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup."""
    print("INFO: Starting application...")

    # Start publishing scheduler
    try:
        start_scheduler()
    except Exception as e:
        print(f"WARNING: Failed to start publishing scheduler: {str(e)}")
        print("WARNING: Scheduled publishing and workflows disabled")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown."""
    print("INFO: Shutting down application...")

    try:
        stop_scheduler()
    except Exception as e:
        print(f"WARNING: Error stopping publishing scheduler: {str(e)}")


@app.get("/")
async def root():
    return {"message": "Welcome to the Crosspost API. Upload a video once with POST /channels/{id}/videos and it is published to every selected platform."}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
