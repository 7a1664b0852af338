"""Launch the token tracker dashboard (Streamlit)."""
import os
import subprocess
import sys
from pathlib import Path


def main():
    root = Path(__file__).parent

    # Detect environment: DOCKER=1 env var means bind on all interfaces
    is_docker = os.environ.get("DOCKER", "0") == "1"
    host = "0.0.0.0" if is_docker else "127.0.0.1"
    port = os.environ.get("PORT", "") or "8501"

    print("=" * 60)
    print("  AI Token Tracker -- run.py starting")
    print(f"  BACKEND_URL={os.environ.get('BACKEND_URL', '(not set, using default)')}")
    print(f"  Dashboard (Streamlit) -> http://{host}:{port}")
    print("=" * 60)

    frontend = subprocess.Popen(
        [sys.executable, "-m", "streamlit", "run", str(root / "frontend" / "app.py"),
         "--server.port", port, "--server.address", host],
        cwd=str(root),
    )

    try:
        frontend.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        frontend.terminate()
        frontend.wait()


if __name__ == "__main__":
    main()
