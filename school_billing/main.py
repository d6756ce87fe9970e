import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from school_billing.api.v1.assessment_flags.router import router as assessment_flags_router
from school_billing.api.v1.assessments.router import router as assessments_router
from school_billing.api.v1.auth.router import router as auth_router
from school_billing.api.v1.charges.router import router as charges_router
from school_billing.api.v1.payments.router import router as payments_router
from school_billing.api.v1.students.router import router as students_router
from school_billing.core.config import settings
from school_billing.core.exceptions import INTERNAL_ERROR_MESSAGE
from school_billing.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Invalid or missing fields are client errors: 400 with the field list
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": INTERNAL_ERROR_MESSAGE},
    )


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="School Billing Backend")

    # CORS: allow the admin frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Routers
    app.include_router(auth_router)
    app.include_router(students_router)
    app.include_router(charges_router)
    app.include_router(payments_router)
    app.include_router(assessments_router)
    app.include_router(assessment_flags_router)

    @app.get("/api/health", tags=["health"])
    async def health() -> dict:
        return {"status": "OK", "message": "School billing API is running"}

    return app


app = create_app()
