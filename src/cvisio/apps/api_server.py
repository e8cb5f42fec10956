from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Any

import uvicorn
from fastapi import Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError as FastAPIValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from cvisio import __version__
from cvisio.apps.runtime_support import build_gateway_runtime
from cvisio.apps.uploads import read_upload_form
from cvisio.cli import base_parser
from cvisio.core.config.loader import load_app_config, load_env_file
from cvisio.core.config.schema import AppConfig
from cvisio.core.gateway.schemas import ErrorResponse, ImageGenerationResponse, ImagePromptRequest, LegalSearchRequest
from cvisio.core.gateway.service import GatewayService
from cvisio.core.providers.base import ProviderAdapter
from cvisio.core.runtime.errors import ClientFacingError, ConfigurationError
from cvisio.core.telemetry.logging import configure_logging, get_logger
from cvisio.core.telemetry.tracing import RequestContext, bind_request_context, new_request_id

PACKAGED_STATIC_DIR = Path(__file__).resolve().parent.parent / "static"
REQUEST_ID_HEADER = "X-Request-ID"


def _error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    ctx = getattr(request.state, "request_context", None)
    headers = {REQUEST_ID_HEADER: ctx.request_id} if ctx else None
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump(), headers=headers)


def create_app(
    config_path: str | None = None,
    *,
    cfg: AppConfig | None = None,
    adapter: ProviderAdapter | None = None,
) -> FastAPI:
    runtime = build_gateway_runtime(config_path, cfg=cfg, adapter=adapter)
    configure_logging(runtime.cfg.telemetry.log_level, runtime.cfg.telemetry.json_logs)
    logger = get_logger("cvisio.api")
    service = GatewayService(cfg=runtime.cfg, adapter=runtime.adapter)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info("gateway_started", provider=runtime.adapter.name, version=__version__)
        yield
        await runtime.adapter.aclose()
        logger.info("gateway_stopped")

    app = FastAPI(title="cvisio gateway", version=__version__, lifespan=lifespan)
    app.state.runtime = runtime
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(runtime.cfg.server.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ClientFacingError)
    async def _client_facing_error(request: Request, exc: ClientFacingError) -> JSONResponse:
        return _error_response(request, exc.status_code, exc.message)

    @app.exception_handler(FastAPIValidationError)
    async def _malformed_request(request: Request, exc: FastAPIValidationError) -> JSONResponse:
        logger.info("request_rejected", path=request.url.path, errors=len(exc.errors()))
        return _error_response(request, 400, "Invalid request body")

    async def _request_context(
        request: Request,
        response: Response,
        x_request_id: Annotated[str | None, Header()] = None,
    ) -> RequestContext:
        ctx = RequestContext(request_id=new_request_id(x_request_id), endpoint=request.url.path)
        bind_request_context(ctx)
        request.state.request_context = ctx
        response.headers[REQUEST_ID_HEADER] = ctx.request_id
        return ctx

    @app.get("/", include_in_schema=False)
    def landing_page() -> FileResponse:
        static_dir = Path(runtime.cfg.server.static_dir) if runtime.cfg.server.static_dir else PACKAGED_STATIC_DIR
        index = static_dir / "index.html"
        if not index.exists():
            index = PACKAGED_STATIC_DIR / "index.html"
        return FileResponse(index, media_type="text/html")

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "version": __version__, "provider": runtime.adapter.name}

    @app.post("/generate-image", response_model=ImageGenerationResponse)
    @app.post("/api/generate-image", response_model=ImageGenerationResponse)
    async def generate_image(
        payload: ImagePromptRequest,
        request: Request,
        ctx: RequestContext = Depends(_request_context),
    ) -> dict[str, Any]:
        return await service.generate_image(payload.prompt, ctx=ctx, request=request)

    @app.post("/legal-search")
    @app.post("/api/legal-search")
    async def legal_search(
        payload: LegalSearchRequest,
        request: Request,
        ctx: RequestContext = Depends(_request_context),
    ) -> dict[str, Any]:
        return await service.legal_search(payload.query, ctx=ctx, request=request)

    @app.post("/api/edit-image")
    async def edit_image(
        request: Request,
        ctx: RequestContext = Depends(_request_context),
    ) -> dict[str, Any]:
        form = await read_upload_form(request, max_bytes=runtime.cfg.server.max_upload_bytes)
        return await service.edit_image(form.fields.get("prompt"), form.attachment("image"), ctx=ctx, request=request)

    @app.post("/api/merge-images")
    async def merge_images(
        request: Request,
        ctx: RequestContext = Depends(_request_context),
    ) -> dict[str, Any]:
        form = await read_upload_form(request, max_bytes=runtime.cfg.server.max_upload_bytes)
        return await service.merge_images(
            form.fields.get("prompt"),
            form.attachment("image1"),
            form.attachment("image2"),
            ctx=ctx,
            request=request,
        )

    return app


def main() -> int:
    parser = base_parser("cvisio-api", "cvisio generative AI gateway")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args()

    load_env_file(args.env_file)
    logger = get_logger("cvisio.api")
    try:
        cfg = load_app_config(instance_path=args.config)
        api = create_app(cfg=cfg)
    except ConfigurationError as exc:
        logger.error("startup_failed", error=str(exc))
        return 1

    uvicorn.run(
        api,
        host=args.host or cfg.server.host,
        port=args.port or cfg.server.port,
        log_level=cfg.telemetry.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
