#!/usr/bin/env python3
# backend/run.py
"""
Development API server.
For local development only - production runs uvicorn/gunicorn directly.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting Miche Mobile API on http://localhost:{port}")
    print(f"API Docs: http://localhost:{port}/docs")

    uvicorn.run("miche.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")
