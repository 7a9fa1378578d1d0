"""
Process entry point.

  python main.py            # background scheduler (job expiry, notifications)
  python main.py web        # serve app.api:app with uvicorn
"""
import asyncio
import os
import sys

from worker.main import main as worker_main


def serve_web() -> None:
    import uvicorn

    uvicorn.run(
        "app.api:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    if sys.argv[1:] == ["web"]:
        serve_web()
    else:
        asyncio.run(worker_main())
