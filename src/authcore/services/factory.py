"""Builds the auth service graph from settings."""

import logging
from datetime import timedelta

from authcore.clock import Clock, utcnow
from authcore.config import Settings
from authcore.database import get_session_maker
from authcore.repositories import Repositories, build_memory_repositories, build_sql_repositories
from authcore.services.audit import LoginAuditLog
from authcore.services.email import CodeDispatcher, EmailCodeDispatcher, get_email_backend
from authcore.services.identity import IdentityProvider, LocalIdentityProvider
from authcore.services.orchestrator import AuthOrchestrator
from authcore.services.passwords import PasswordHasher
from authcore.services.provisioning import UserProvisioner
from authcore.services.rate_limit import RateLimiter
from authcore.services.sessions import SessionIssuer
from authcore.services.verification import VerificationCodeService

logger = logging.getLogger(__name__)


def get_repositories(settings: Settings, clock: Clock = utcnow) -> Repositories:
    """Build the configured repository backend."""
    if settings.datastore_backend == "memory":
        logger.warning("Using in-memory datastore; nothing will be persisted")
        return build_memory_repositories(clock=clock)
    elif settings.datastore_backend == "sql":
        return build_sql_repositories(get_session_maker())
    else:
        raise ValueError(f"Unknown datastore backend: {settings.datastore_backend}")


def build_auth_service(
    settings: Settings,
    repositories: Repositories | None = None,
    clock: Clock = utcnow,
    dispatcher: CodeDispatcher | None = None,
    identity: IdentityProvider | None = None,
) -> AuthOrchestrator:
    """Wire every component of the auth core.

    Args:
        settings: Source of all tunables
        repositories: Override the configured datastore (tests)
        clock: Time source shared by every component
        dispatcher: Override the configured email backend (tests)
        identity: Override the local identity provider

    Raises:
        ValueError: session secret too short or unknown backend name
    """
    repos = repositories or get_repositories(settings, clock=clock)
    dispatcher = dispatcher or EmailCodeDispatcher(
        get_email_backend(settings),
        app_name=settings.email_from_name,
        code_ttl_minutes=settings.code_ttl_minutes,
    )

    return AuthOrchestrator(
        users=repos.users,
        codes=VerificationCodeService(
            repos.codes,
            dispatcher,
            clock=clock,
            ttl=timedelta(minutes=settings.code_ttl_minutes),
            max_attempts=settings.code_max_attempts,
            logger=logging.getLogger("authcore.services.verification"),
        ),
        rate_limiter=RateLimiter(
            repos.codes,
            repos.logins,
            clock=clock,
            send_interval=timedelta(seconds=settings.code_resend_interval_seconds),
            login_failure_limit=settings.login_failure_limit,
            login_failure_window=timedelta(minutes=settings.login_failure_window_minutes),
            logger=logging.getLogger("authcore.services.rate_limit"),
        ),
        provisioner=UserProvisioner(
            repos.users, logger=logging.getLogger("authcore.services.provisioning")
        ),
        sessions=SessionIssuer(
            settings.session_secret,
            ttl=timedelta(days=settings.session_ttl_days),
            algorithm=settings.jwt_algorithm,
            clock=clock,
            logger=logging.getLogger("authcore.services.sessions"),
        ),
        audit=LoginAuditLog(
            repos.logins, clock=clock, logger=logging.getLogger("authcore.services.audit")
        ),
        identity=identity or LocalIdentityProvider(repos.users),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        clock=clock,
        logger=logging.getLogger("authcore.services.orchestrator"),
    )
