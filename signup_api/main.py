from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from signup_api.api.routes import signup
from signup_api.core.config import Settings, get_settings
from signup_api.core.errors import ApiError
from signup_api.core.log import configure_logging
from signup_api.services.handler import SubmissionHandler, build_handler


def create_app(settings: Settings | None = None, handler: SubmissionHandler | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    handler = handler or build_handler(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        handler.close()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.submission_handler = handler

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": exc.message, "code": exc.code},
        )

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(signup.router)
    return app


app = create_app()
