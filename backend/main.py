"""
EduYantra Reports — attendance and performance reporting API.
FastAPI backend entry point.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routes.attendance import router as attendance_router
from routes.performance import router as performance_router
from routes.analytics import router as analytics_router
from routes.upload import router as upload_router

# Load environment
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

app = FastAPI(
    title="EduYantra Reports API",
    description=(
        "Attendance summaries, subject performance trends and at-risk "
        "detection for school dashboards."
    ),
    version="1.0.0",
)

# CORS: allow the dashboard frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(attendance_router, prefix="/api/attendance", tags=["Attendance"])
app.include_router(performance_router, prefix="/api/performance", tags=["Performance"])
app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(upload_router, prefix="/api/upload", tags=["Upload"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
        "database_configured": bool(os.getenv("DATABASE_URL")),
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        "attendance_warning": float(os.getenv("ATTENDANCE_WARNING", "75")),
        "score_warning": float(os.getenv("SCORE_WARNING", "50")),
    }
