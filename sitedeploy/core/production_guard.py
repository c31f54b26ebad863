"""Production settings guard — enforces hard constraints in production.

Runs once when an orchestrator is built from settings and fails hard
(raises ``ProductionConfigError``) if any constraint is violated.  Other
code should not scatter ``if is_production`` checks.
"""

from __future__ import annotations

import logging

from sitedeploy.config import DeploySettings

logger = logging.getLogger(__name__)


class ProductionConfigError(RuntimeError):
    """Raised when production settings constraints are violated.

    The process cannot safely deploy to production with the current
    settings; it must not be caught and ignored.
    """


def enforce_production_constraints(settings: DeploySettings) -> None:
    """Validate all production-critical settings.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. The environment lease TTL must be positive.
    3. At least one attempt per object operation.
    4. The lease TTL must outlast the invalidation verification timeout.

    Raises
    ------
    ProductionConfigError
        Listing every violated constraint.
    """
    if not settings.is_production:
        return

    violations: list[str] = []

    if settings.debug:
        violations.append(
            "debug=True is not allowed in production. Set SITEDEPLOY_DEBUG=false."
        )

    if settings.lock_ttl_seconds <= 0:
        violations.append(
            "lock_ttl_seconds must be positive in production; "
            "concurrent deploys to one environment would not be serialized."
        )

    if settings.max_attempts < 1:
        violations.append("max_attempts must be at least 1.")

    if settings.lock_ttl_seconds <= settings.invalidation_timeout_seconds:
        violations.append(
            f"lock_ttl_seconds ({settings.lock_ttl_seconds:.0f}) must exceed "
            f"invalidation_timeout_seconds ({settings.invalidation_timeout_seconds:.0f}); "
            "the lease could expire while a run is still verifying."
        )

    if violations:
        msg = (
            "Production configuration guard failed.\n"
            + "\n".join(f"  - {v}" for v in violations)
        )
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.info("Production configuration guard passed.")
