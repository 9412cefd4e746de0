# main.py
from pathlib import Path
import routes
from contextlib import asynccontextmanager
import logging
from util.enums import Environment, Color, ErrorMessage
from util.errors import AppError
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from starlette.middleware.cors import CORSMiddleware
from config.settings import settings
from config.cache import close_rate_limiter, init_rate_limiter
from fastapi.responses import JSONResponse
from model.api import ErrorResponse
from util.constants import InternalURIs
from util.logger import init_logger

logger = logging.getLogger(__name__)


async def _real_ip(request: Request) -> str:
    if settings.TRUST_PROXY:
        fwd = request.headers.get("x-forwarded-for")
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    try:
        init_logger()
        print(f"{Color.GREEN}Initializing...{Color.RESET}")
        Path(settings.UPLOAD_ROOT).mkdir(parents=True, exist_ok=True)
        await init_rate_limiter(_real_ip)
        print(f"{Color.BLUE}Server Started{Color.RESET}")
    except Exception as e:
        print("Failed to start:", e)
        raise

    try:
        yield
    finally:
        try:
            await close_rate_limiter()
        except Exception as e:
            print("Error closing rate limiter:", e)

        print(f"{Color.RED}Server Shutdown{Color.RESET}")


app: FastAPI = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_methods=["GET", "POST"],  # Allowed HTTP Methods
    allow_headers=["Content-Type"],  # Allowed HTTP Headers
)


@app.get(InternalURIs.ROOT, response_class=PlainTextResponse)
async def root() -> str:
    return "Noir backend is running"


@app.get(InternalURIs.HEALTHZ)
async def healthz():
    return {"ok": True}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    logger.info("http.invalid path=%s err=%s", request.url.path, problems)
    return JSONResponse(status_code=422, content=ErrorResponse(error=problems).model_dump())


@app.exception_handler(429)
async def ratelimit_handler(request: Request, exc):
    window = settings.RATE_LIMIT_SECONDS
    return JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=f"Too many requests. Try again in {window}s."
        ).model_dump(),
        headers={"Retry-After": str(window)},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("http.unhandled path=%s err=%s", request.url.path, type(exc).__name__)
    message, http_status = ErrorMessage.INTERNAL_ERROR.value
    return JSONResponse(
        status_code=http_status, content=ErrorResponse(error=message).model_dump()
    )


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host="0.0.0.0", port=3000, reload=reload)
