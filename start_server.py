#!/usr/bin/env python3
"""Start the planner API under uvicorn, honouring the PORT environment variable."""

import os
import subprocess
import sys
from pathlib import Path

port = os.environ.get("PORT", "8000")
try:
    port_int = int(port)
except ValueError:
    print(f"Warning: Invalid PORT value '{port}', using default 8000", file=sys.stderr)
    port_int = 8000

src_path = Path(__file__).resolve().parent / "src"
if not src_path.is_dir():
    print(f"Error: src directory not found at {src_path}", file=sys.stderr)
    sys.exit(1)

pythonpath = os.environ.get("PYTHONPATH", "")
os.environ["PYTHONPATH"] = f"{src_path}{os.pathsep}{pythonpath}" if pythonpath else str(src_path)
sys.path.insert(0, str(src_path))

# Fail fast on configuration or import errors before handing over to uvicorn.
try:
    import trip_planner.main  # noqa: F401
except Exception as e:
    print(f"Failed to import trip_planner.main ({type(e).__name__}): {e}", file=sys.stderr)
    sys.exit(1)

cmd = [
    sys.executable,
    "-m",
    "uvicorn",
    "trip_planner.main:app",
    "--host",
    "0.0.0.0",
    "--port",
    str(port_int),
    "--proxy-headers",
    "--forwarded-allow-ips", "*",
]

print(f"Starting planner API on port {port_int}...", file=sys.stderr)
try:
    sys.exit(subprocess.call(cmd))
except KeyboardInterrupt:
    print("Server interrupted by user", file=sys.stderr)
    sys.exit(0)
