import logging
import sys
import uuid
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.routers import media
from app.utils.logger import logger
from app.config import settings

# Global logging configuration
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

app = FastAPI(title="Travel Media Admin API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,
)

# Request logging middleware with request ID
@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = uuid.uuid4().hex[:8]
    request.state.rid = rid
    logging.info("→ %s %s rid=%s", request.method, request.url.path, rid)
    try:
        resp = await call_next(request)
        logging.info("← %s status=%s rid=%s", request.url.path, resp.status_code, rid)
        resp.headers["X-Request-ID"] = rid
        return resp
    except Exception as e:
        logging.exception("Unhandled error rid=%s: %s", rid, str(e))
        error_resp = JSONResponse(
            {"error": "internal_error", "rid": rid, "message": str(e), "type": type(e).__name__},
            status_code=500
        )
        error_resp.headers["X-Request-ID"] = rid
        return error_resp

app.include_router(media.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Travel Media Admin API starting up...")
    if not settings.SHOP_DOMAIN:
        logger.warning("SHOP_DOMAIN not set. Media endpoints will fail until it is configured.")
    elif not settings.ADMIN_API_ACCESS_TOKEN:
        logger.warning("ADMIN_API_ACCESS_TOKEN not set. Media endpoints will fail until it is configured.")
    else:
        logger.info("Admin GraphQL endpoint: %s", settings.admin_graphql_url)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
