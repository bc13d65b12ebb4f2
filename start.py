"""Service startup - imports the real app with error handling."""
import os
import traceback

port = int(os.environ.get("PORT", "3000"))
host = os.environ.get("HOST", "0.0.0.0")
import_error = None

# Try to import the real app
try:
    from src.api.server import app
    print("[start.py] Real app imported successfully", flush=True)
except Exception as e:
    import_error = f"{type(e).__name__}: {e}\n{traceback.format_exc()}"
    print(f"[start.py] IMPORT FAILED: {import_error}", flush=True)
    # Fallback to minimal app that reports the error on /health
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse
    app = FastAPI()
    err_msg = import_error  # capture in closure

    @app.get("/health")
    async def health():
        return JSONResponse(
            status_code=500,
            content={"ok": False, "message": "Import error", "detail": err_msg},
        )

import uvicorn
print(f"[start.py] Starting on {host}:{port}", flush=True)
uvicorn.run(app, host=host, port=port, log_level="info")
