"""Runtime configuration for the collector, read from the environment."""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

DIPALME_BASE_URL = os.getenv(
    "DIPALME_BASE_URL",
    "https://www.dipalme.org/Servicios/cmsdipro/index.nsf/fiestas_view_actividad.xsp",
)
DIPALME_ORIGIN = os.getenv("DIPALME_ORIGIN", "https://www.dipalme.org")

# Comma separated, in the order results are concatenated.
EVENT_CATEGORIES = [
    name.strip()
    for name in os.getenv(
        "EVENT_CATEGORIES", "Fiestas,Festivales,Espectáculos,Exposiciones"
    ).split(",")
    if name.strip()
]

FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "30"))
FETCH_MAX_RETRIES = int(os.getenv("FETCH_MAX_RETRIES", "3"))
FETCH_RETRY_DELAY = float(os.getenv("FETCH_RETRY_DELAY", "1.0"))
FETCH_MAX_REDIRECTS = int(os.getenv("FETCH_MAX_REDIRECTS", "5"))

CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", str(30 * 60)))
CACHE_WARMUP_DELAY = float(os.getenv("CACHE_WARMUP_DELAY", "5"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "https://kedada.vercel.app,"
        "https://kedada-git-main-lucas-projects-d3b7a1b1.vercel.app,"
        "http://localhost:3000,"
        "http://localhost:5173",
    ).split(",")
    if origin.strip()
]

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()
