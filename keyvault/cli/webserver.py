import os

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from tap import Tap

from keyvault.logging_util import setup_structlog
from keyvault.web.router_search import router as search_router
from keyvault.web.router_secrets import router as secrets_router

setup_structlog(os.environ.get("KEYVAULT_LOG_LEVEL", "warning"))

logger = structlog.stdlib.get_logger(__name__)

app = FastAPI(title="keyvault OpenAPI interface", version="1.0")
# The web UI is served from somewhere else entirely, so we can't restrict the origins here
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)
# please sort the following lines alphabetically when changing them
app.include_router(search_router)
app.include_router(secrets_router)


class Arguments(Tap):
    host: str = "0.0.0.0"  # Interface to listen on
    port: int = 3000  # Port to listen on


def main() -> None:
    args = Arguments(underscores_to_dashes=True).parse_args()
    logger.info(f"starting web server on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
