from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .deps import get_file_ops
from .routers import files
from .services.ownership import check_root_ownership

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
)
logger = logging.getLogger(__name__)

_SECURITY_HEADERS = {
    'Content-Security-Policy': "default-src 'self'; img-src 'self' data:",
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
}

# multipart boundaries and headers around the file part
_FORM_OVERHEAD_BYTES = 64 * 1024


def _parse_cors_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(',') if origin.strip()]


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.check_owner:
        root = check_root_ownership(settings.files_root_dir)
    else:
        logger.warning('Root ownership check disabled')
        root = get_file_ops().root
    logger.info('Starting file manager with root directory: %s', root)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

cors_origins = _parse_cors_origins(settings.cors_origins)
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=['GET', 'POST', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type'],
    )


def _apply_security_headers(response):
    for key, value in _SECURITY_HEADERS.items():
        response.headers[key] = value
    return response


@app.middleware('http')
async def upload_size_guard(request: Request, call_next):
    if request.method == 'POST' and request.url.path == '/api/upload':
        length = request.headers.get('content-length', '')
        if length.isdigit() and int(length) > settings.max_upload_bytes + _FORM_OVERHEAD_BYTES:
            logger.warning('Rejected upload of %s bytes', length)
            return JSONResponse({'success': False, 'error': 'Upload too large'}, status_code=413)
    return await call_next(request)


@app.middleware('http')
async def security_middleware(request: Request, call_next):
    response = await call_next(request)
    return _apply_security_headers(response)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException):
    return JSONResponse({'success': False, 'error': exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    ]
    return JSONResponse({'success': False, 'error': 'Invalid request', 'details': errors}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    if request.url.path.startswith('/api/'):
        return JSONResponse({'success': False, 'error': 'Internal server error. Please try again.'}, status_code=500)
    return HTMLResponse('<h1>Unexpected error</h1><p>Please try again.</p>', status_code=500)


@app.get('/healthz')
def healthz():
    return {'ok': True}


app.include_router(files.router)


def _mount_static(application: FastAPI, directory: str) -> bool:
    if not Path(directory).is_dir():
        logger.info('Static directory %s not found, web client disabled', directory)
        return False
    application.mount('/static', StaticFiles(directory=directory), name='static')
    return True


_mount_static(app, settings.static_dir)


@app.get('/', include_in_schema=False)
def index():
    page = Path(settings.static_dir) / 'index.html'
    if not page.is_file():
        raise HTTPException(status_code=404, detail='Not found')
    return FileResponse(page)
