"""
Run the API with uvicorn: ``python -m pbsnet --port 5000``.
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

from pbsnet.config import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the pbsnet API.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--workers", type=int, default=1)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    if settings.uses_appwrite:
        logger.info(
            "Appwrite project %s at %s",
            settings.appwrite_project_id,
            settings.appwrite_endpoint,
        )
    else:
        logger.warning("No Appwrite endpoint configured; using in-memory backends")
    if args.workers > 1 and not settings.redis_url:
        logger.warning(
            "Several workers without REDIS_URL: profile updates are only "
            "serialized per process"
        )

    uvicorn.run("pbsnet.app:app", host=args.host, port=args.port, workers=args.workers)


if __name__ == "__main__":
    main()
