# HTTP entry point: serves ride-hail and transit comparisons for a route.

import argparse
import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api_adapters import HTTP_TIMEOUT_SEC, GoogleTransitAdapter, LyftAdapter, UberAdapter
from api_errors import VectorError
from api_structures import RouteRequest
from comp_aggregator import CompAggregator
from quote_cache import DEFAULT_TTL_SEC, QuoteCache

logger = logging.getLogger(__name__)

VERSION = "0.1"
DEFAULT_PORT = 8888


def create_app(aggregator: CompAggregator) -> FastAPI:
    """Builds the API around an already configured aggregator."""
    app = FastAPI(title="vector", version=VERSION)

    @app.exception_handler(VectorError)
    async def handle_vector_error(request: Request, exc: VectorError):
        # Callers only ever see a generic not-found; details stay in the logs.
        logger.error(f"Request to {request.url.path} failed: {exc}")
        return JSONResponse(status_code=404, content={"Error": "Resource not found"})

    @app.exception_handler(RequestValidationError)
    async def handle_bad_payload(request: Request, exc: RequestValidationError):
        logger.error(f"Could not decode payload for {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=404, content={"Error": "Resource not found"})

    @app.post("/comp")
    def get_comp(payload: dict = Body(...)):
        route = RouteRequest.from_payload(payload)
        return aggregator.handle(route).to_dict()

    return app


def build_aggregator(cache_ttl: float, timeout: float = HTTP_TIMEOUT_SEC) -> CompAggregator:
    """Creates the provider adapters and cache once, at startup."""
    return CompAggregator(
        uber=UberAdapter(timeout=timeout),
        lyft=LyftAdapter(timeout=timeout),
        transit=GoogleTransitAdapter(timeout=timeout),
        cache=QuoteCache(ttl_sec=cache_ttl),
    )


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Vector: compare ride-hail and transit estimates for a route.")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose mode to see the exact API calls being made.")
    parser.add_argument('--port', type=int,
                        default=int(os.getenv("VECTOR_PORT", DEFAULT_PORT)),
                        help=f"Port to listen on [Default: {DEFAULT_PORT}].")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    logger.info(f"Starting vector v{VERSION}")

    try:
        cache_ttl = float(os.getenv("VECTOR_CACHE_TTL", DEFAULT_TTL_SEC))
        timeout = float(os.getenv("VECTOR_HTTP_TIMEOUT", HTTP_TIMEOUT_SEC))
        aggregator = build_aggregator(cache_ttl, timeout)
    except ValueError as e:
        print(e)
        sys.exit(1)

    logger.info(f"Starting HTTP server on port {args.port}")
    uvicorn.run(create_app(aggregator), host="0.0.0.0", port=args.port,
                log_level="debug" if args.verbose else "info")


if __name__ == '__main__':
    main()
