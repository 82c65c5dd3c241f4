"""
Review Requests - Web Server Entry Point
========================================

Run this to start the API server:
    python main.py

Tracking links in emails point at TRACKING_BASE_URL, so set it to the
public address of this server.

To send pending review requests from the terminal:
    python run_campaign.py --user <user-id> --location <location-id>
"""

import os
import sys
from pathlib import Path

import uvicorn

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))


def main():
    """Start the web server."""
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))

    print("\n" + "=" * 50)
    print("   Review Requests - API Server")
    print("=" * 50)
    print(f"\n   Starting server at http://{host}:{port}")
    print("   Press Ctrl+C to stop\n")

    uvicorn.run(
        "review_requests.web.app:app",
        host=host,
        port=port,
        reload=os.getenv("RELOAD", "").lower() in {"1", "true", "yes"},
        log_level="info"
    )


if __name__ == "__main__":
    main()
