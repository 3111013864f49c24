"""FastAPI application factory.

Creates the app with organization-context middleware, logging middleware,
metrics middleware, CORS, Sentry, the v1 API router, and a lifespan that
wires the scheduling services onto app.state.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.app.config import Settings, get_settings
from src.app.core.database import close_db, get_session
from src.app.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.app.core.organization import OrganizationContextMiddleware
from src.app.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.app.api.v1.interviews import register_exception_handlers
from src.app.api.v1.router import router as v1_router
from src.app.interviews.calendar import GoogleCalendarMirror
from src.app.interviews.directory import SqlCandidateLookup, SqlDirectory
from src.app.interviews.dispatcher import SideEffectDispatcher
from src.app.interviews.gateway import ProviderGateway
from src.app.interviews.lifecycle import InterviewLifecycleManager
from src.app.interviews.notifications import EmailNotificationSender
from src.app.interviews.orchestrator import MeetingOrchestrator
from src.app.interviews.providers import GoogleMeetProvider, MicrosoftTeamsProvider, ZoomProvider
from src.app.interviews.repository import (
    ActivityLogRepository,
    IntegrationRepository,
    InterviewRepository,
)
from src.app.interviews.tokens import TokenRefresher

logger = structlog.get_logger(__name__)


def build_services(app: FastAPI, settings: Settings) -> None:
    """Construct the scheduling services and store them on app.state.

    Google Workspace is optional: without a service account the calendar
    mirror is disabled and notifications are logged instead of emailed.
    """
    gmail_service = None
    calendar_mirror = None
    if settings.gsuite_configured:
        try:
            from src.app.services.gsuite import GmailService, GoogleCalendarService, GSuiteAuthManager

            gsuite_auth = GSuiteAuthManager(
                delegated_user_email=settings.GOOGLE_DELEGATED_USER_EMAIL,
                service_account_file=settings.GOOGLE_SERVICE_ACCOUNT_FILE or None,
                service_account_json_b64=settings.GOOGLE_SERVICE_ACCOUNT_JSON_B64 or None,
            )
            gmail_service = GmailService(
                auth_manager=gsuite_auth,
                default_user_email=settings.GOOGLE_DELEGATED_USER_EMAIL,
            )
            calendar_mirror = GoogleCalendarMirror(GoogleCalendarService(auth_manager=gsuite_auth))
            logger.info("startup.gsuite_initialized")
        except Exception:
            logger.warning("startup.gsuite_init_failed", exc_info=True)
            gmail_service = None
            calendar_mirror = None
    else:
        logger.info("startup.gsuite_not_configured")

    interview_repo = InterviewRepository(session_factory=get_session)
    activity_repo = ActivityLogRepository(session_factory=get_session)
    integrations = IntegrationRepository(
        session_factory=get_session,
        refresher=TokenRefresher.from_settings(settings),
    )

    token_source = integrations.get_access_token
    timeout = settings.PROVIDER_TIMEOUT_SECONDS
    gateway = ProviderGateway(
        providers=[
            ZoomProvider(token_source, settings.ZOOM_API_BASE_URL, timeout=timeout),
            MicrosoftTeamsProvider(token_source, settings.MICROSOFT_GRAPH_BASE_URL, timeout=timeout),
            GoogleMeetProvider(token_source, settings.GOOGLE_CALENDAR_API_BASE_URL, timeout=timeout),
        ],
        timeout=timeout,
    )

    dispatcher = SideEffectDispatcher(
        notifier=EmailNotificationSender(
            gmail_service,
            sender_email=settings.NOTIFICATION_SENDER_EMAIL or None,
            company_name=settings.COMPANY_NAME,
        ),
        activity_log=activity_repo,
        timeout=settings.DISPATCH_TIMEOUT_SECONDS,
    )

    app.state.interview_repository = interview_repo
    app.state.dispatcher = dispatcher
    app.state.orchestrator = MeetingOrchestrator(
        repository=interview_repo,
        directory=SqlDirectory(session_factory=get_session),
        candidates=SqlCandidateLookup(session_factory=get_session),
        gateway=gateway,
        dispatcher=dispatcher,
        calendar=calendar_mirror,
        calendar_timeout=settings.CALENDAR_TIMEOUT_SECONDS,
    )
    app.state.lifecycle_manager = InterviewLifecycleManager(
        repository=interview_repo,
        dispatcher=dispatcher,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: logging, Sentry and services on startup;
    drain dispatches and close the database on shutdown."""
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    build_services(app, settings)
    logger.info("startup.complete", environment=settings.ENVIRONMENT.value)

    yield

    dispatcher = getattr(app.state, "dispatcher", None)
    if dispatcher is not None:
        await dispatcher.drain(timeout=settings.DISPATCH_TIMEOUT_SECONDS)
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Interview Scheduling API",
        version="0.1.0",
        description="Interview scheduling and meeting-provider orchestration",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Organization middleware (inner -- resolves org context from JWT)
    app.add_middleware(OrganizationContextMiddleware)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)
    register_exception_handlers(app)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
