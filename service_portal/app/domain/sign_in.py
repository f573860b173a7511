"""
Sign-in policy: corporate domain check followed by the upstream allow-list.
"""

from typing import Optional

from shared.errors import AuthorizationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..adapters.apps_script_client import AppsScriptClient
from .session import UserRole


class SignInPolicy:
    """Decides whether an email may sign in and with which role.

    Fails closed: any error while consulting the allow-list is a denial.
    """

    def __init__(
        self,
        allowed_domain: str,
        apps_script_client: AppsScriptClient,
        *,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.allowed_domain = allowed_domain.lower().lstrip("@")
        self.apps_script_client = apps_script_client
        self.metrics = metrics
        self.logger = get_logger("portal.sign_in")

    def is_allowed_domain(self, email: str) -> bool:
        return email.lower().strip().endswith(f"@{self.allowed_domain}")

    async def authorize(self, email: str) -> UserRole:
        """Return the role for ``email`` or raise AuthorizationError."""
        email = email.lower().strip()

        if not self.is_allowed_domain(email):
            raise self._denial(email, "domain")

        try:
            result = await self.apps_script_client.validate_user(email)
        except Exception as exc:
            self.logger.error("Allow-list validation failed", email=email, error=str(exc))
            raise self._denial(email, "validation_error") from exc

        if result.get("allowed") is not True:
            raise self._denial(email, "not_allowed")

        role = UserRole.parse(result.get("rol") or result.get("role"))
        self.logger.info("Sign-in allowed", email=email, role=role.value)
        if self.metrics:
            self.metrics.increment_counter("sign_in_attempts_total", result="allowed")
        return role

    def _denial(self, email: str, reason: str) -> AuthorizationError:
        self.logger.warning("Sign-in denied", email=email, reason=reason)
        if self.metrics:
            self.metrics.increment_counter("sign_in_attempts_total", result=f"denied_{reason}")
        return AuthorizationError(details={"reason": reason})
