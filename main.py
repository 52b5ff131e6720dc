from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from routers.otp import router as otp_router
from utils.brevo_email import build_email_sender
from utils.otp_errors import OTPError
from utils.otp_service import OTPService
from utils.otp_store import OTPStore


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(*, store: OTPStore | None = None, email_sender=None) -> FastAPI:
    app = FastAPI(title="Admin OTP Backend")

    if store is None:
        store = OTPStore()
    if email_sender is None:
        email_sender = build_email_sender()
    app.state.otp_store = store
    app.state.otp_service = OTPService(store, email_sender)

    app.include_router(otp_router, prefix="/api")

    @app.exception_handler(OTPError)
    async def _otp_error(request: Request, exc: OTPError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid request"})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    @app.on_event("startup")
    def _start_reaper():
        app.state.otp_store.start()

    @app.on_event("shutdown")
    def _stop_reaper():
        app.state.otp_store.destroy()

    @app.get("/")
    def root():
        return {"status": "OTP backend running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
