"""Tagged failures raised by the provisioning core.

Each error carries the operation and resource it concerns so that a failed
leaf can be logged meaningfully without re-deriving that context.
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for every failure the reconciler records as an outcome."""

    kind = "provisioning_error"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        resource: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.resource = resource

    def log_context(self) -> dict[str, str | None]:
        """Return structured fields describing this failure."""
        return {
            "error_kind": self.kind,
            "operation": self.operation,
            "resource": self.resource,
            "error": self.message,
        }


class ConfigError(ProvisioningError):
    """The supplied topology configuration is structurally invalid."""

    kind = "config_error"


class ServiceError(ProvisioningError):
    """An SNS/SQS/STS call failed at the transport or API level."""

    kind = "service_error"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        resource: str | None = None,
        code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, operation=operation, resource=resource)
        self.code = code
        self.cause = cause

    def log_context(self) -> dict[str, str | None]:
        ctx = super().log_context()
        ctx["error_code"] = self.code
        return ctx


class ContractViolation(ProvisioningError):
    """A call reported success but omitted a field the API guarantees."""

    kind = "contract_violation"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        resource: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation, resource=resource)
        self.field = field


class PolicyUnresolvable(ProvisioningError):
    """A queue needs an access policy but region or account id is unknown."""

    kind = "policy_unresolvable"
