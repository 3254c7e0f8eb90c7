from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse
import logging
import os
import time

from db.database import open_db, init_db
from db.stores import ExpenseStore, InventoryStore
from routers import expenses, inventory, slips
from routers.errors import register_error_handlers
from services.scan_service import ScanCoordinator

# ── Logging setup ─────────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
# Quiet noisy libraries unless we're in DEBUG
if LOG_LEVEL != "DEBUG":
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

logger = logging.getLogger("slipkeep")

app = FastAPI(
    title="SlipKeep — Expense Tracker",
    description="Personal expense tracking with receipt OCR pre-fill",
    version="0.1.0",
)

_cors_origins = os.environ.get("CORS_ORIGINS", "").strip()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins.split(",") if _cors_origins else ["*"],
    allow_credentials=bool(_cors_origins),  # only send credentials when origins are explicit
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(expenses.router,  prefix="/api/expenses",  tags=["expenses"])
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"])
app.include_router(slips.router,     prefix="/api/slips",     tags=["slips"])

# Uploaded slips
os.makedirs(slips.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=slips.UPLOAD_DIR), name="uploads")

# Serve frontend static files
FRONTEND_DIR = os.environ.get("FRONTEND_DIR", "/app/frontend")
if os.path.exists(FRONTEND_DIR):
    app.mount("/assets", StaticFiles(directory=f"{FRONTEND_DIR}/assets"), name="assets")

    @app.get("/", include_in_schema=False)
    async def serve_frontend():
        return FileResponse(f"{FRONTEND_DIR}/index.html")

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed = (time.time() - start) * 1000
    if LOG_LEVEL == "DEBUG" or response.status_code >= 400:
        logger.log(
            logging.WARNING if response.status_code >= 400 else logging.DEBUG,
            "%s %s → %s (%.0fms)",
            request.method, request.url.path, response.status_code, elapsed,
        )
    return response

@app.on_event("startup")
async def on_startup():
    logger.info("Starting SlipKeep v0.1.0  LOG_LEVEL=%s  DB=%s",
                LOG_LEVEL, os.environ.get("DB_PATH", "(in-memory)"))
    db = await open_db()
    await init_db(db)
    app.state.db = db
    app.state.expenses = ExpenseStore(db)
    app.state.inventory = InventoryStore(db)
    app.state.scans = ScanCoordinator()

@app.on_event("shutdown")
async def on_shutdown():
    await app.state.db.close()

@app.get("/api/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}


@app.get("/api/diagnose")
async def diagnose():
    """Check that the OCR toolchain and upload directory are usable."""
    import subprocess
    from services.ocr_service import OCR_PRIMARY_LANG, OCR_SECONDARY_LANG
    results = {}

    # Tesseract binary
    try:
        r = subprocess.run(["tesseract", "--version"], capture_output=True, text=True, timeout=5)
        results["tesseract"] = {"ok": r.returncode == 0, "version": r.stdout.split("\n")[0].strip()}
    except FileNotFoundError:
        results["tesseract"] = {"ok": False, "error": "tesseract binary not found in PATH"}
    except (OSError, subprocess.SubprocessError) as e:
        results["tesseract"] = {"ok": False, "error": str(e)}

    # Installed language packs
    try:
        r = subprocess.run(["tesseract", "--list-langs"], capture_output=True, text=True, timeout=5)
        langs = {line.strip() for line in r.stdout.splitlines()[1:] if line.strip()}
        wanted = {OCR_PRIMARY_LANG, OCR_SECONDARY_LANG}
        results["languages"] = {"ok": wanted <= langs, "installed": sorted(langs),
                                "missing": sorted(wanted - langs)}
    except (OSError, subprocess.SubprocessError) as e:
        results["languages"] = {"ok": False, "error": str(e)}

    # Upload dir
    results["upload_dir"] = {
        "ok": os.path.isdir(slips.UPLOAD_DIR) and os.access(slips.UPLOAD_DIR, os.W_OK),
        "path": slips.UPLOAD_DIR,
    }

    return {"all_ok": all(v.get("ok") for v in results.values()), "checks": results}
