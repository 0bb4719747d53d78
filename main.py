import traceback
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from api_client import UpstreamClient, fetch_homepage, fetch_subject_detail, fetch_trending, search_subjects
from cache import MetadataCache, url_key
from config import PORT, SELECTED_HOST, SubjectType
from errors import GatewayError
from session_mgr import SessionManager
from sources import cache_subject_info, get_sources
from transfer import StreamingProxy


class Gateway:
    """Shared state for one app instance: upstream session, metadata cache and media proxy."""

    def __init__(self, sm: Optional[SessionManager] = None, cache: Optional[MetadataCache] = None,
                 proxy: Optional[StreamingProxy] = None):
        self.sm = sm if sm is not None else SessionManager()
        self.client = UpstreamClient(self.sm)
        self.cache = cache if cache is not None else MetadataCache()
        self.proxy = proxy if proxy is not None else StreamingProxy(self.cache)


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def success(data):
    return {"status": "success", "data": data}


router = APIRouter()

INDEX_PAGE = """<h2>🎬 MovieBox API Server is Running</h2>
<p>Endpoints: /api/homepage, /api/trending, /api/search/:query, /api/info/:movieId,
/api/sources/:movieId, /api/download/:url</p>"""


@router.get("/", response_class=HTMLResponse)
def root():
    return INDEX_PAGE


@router.get("/health")
def health(gw: Gateway = Depends(get_gateway)):
    return {"status": "ok", "session": gw.sm.initialized, "host": SELECTED_HOST, "cachedEntries": len(gw.cache)}


@router.get("/api/homepage")
def homepage(gw: Gateway = Depends(get_gateway)):
    return success(fetch_homepage(gw.client))


@router.get("/api/trending")
def trending(page: int = 0, perPage: int = 18, gw: Gateway = Depends(get_gateway)):
    return success(fetch_trending(gw.client, page, perPage))


@router.get("/api/search/{query}")
def search(query: str, page: int = 1, perPage: int = 24, type: int = SubjectType.ALL,
           gw: Gateway = Depends(get_gateway)):
    """Search the catalog by keyword"""
    return success(search_subjects(gw.client, query, page, perPage, type))


@router.get("/api/info/{movie_id}")
def info(movie_id: str, gw: Gateway = Depends(get_gateway)):
    detail = fetch_subject_detail(gw.client, movie_id)
    cache_subject_info(gw.cache, detail, movie_id)
    return success(detail)


@router.get("/api/sources/{movie_id}")
def sources(movie_id: str, request: Request, season: int = 0, episode: int = 0,
            gw: Gateway = Depends(get_gateway)):
    """Download links for a movie or episode, each with a proxyUrl back through this server"""
    return success(get_sources(gw.client, gw.cache, movie_id, season, episode, str(request.base_url)))


@router.get("/api/download/{target:path}")
def download(target: str, request: Request, gw: Gateway = Depends(get_gateway)):
    """Stream a media file through the server with a readable filename"""
    return gw.proxy.proxy_download(target, url_key(target), request.headers.get("range"))


async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=404, content={"status": "error", "message": "Endpoint not found"})


async def unexpected_error_handler(request: Request, exc: Exception):
    details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    print(f"❌ Unhandled error on {request.url.path}: {details}")
    return JSONResponse(status_code=500, content={"status": "error", "message": "Internal server error",
                                                  "error": str(exc)})


def create_app(gateway: Optional[Gateway] = None) -> FastAPI:
    app = FastAPI(
        title="MovieBox API Gateway",
        description="Session-managed gateway and download proxy for the MovieBox catalog API",
        version="1.0.0"
    )
    app.state.gateway = gateway if gateway is not None else Gateway()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization", "Range"],
    )
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(404, not_found_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(router)
    return app


app = create_app()


# Vercel serverless function handler
def handler(request, context=None):
    from mangum import Mangum

    asgi_handler = Mangum(app)
    return asgi_handler(request, context)


# For local development
if __name__ == "__main__":
    import uvicorn
    print(f"🚀 MovieBox API running on http://0.0.0.0:{PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
