"""Deploy orchestrator — turns a completed build into a live, cache-correct site.

The DeployOrchestrator wires together the planner, the object store and
CDN clients, the run state machine, the deploy ledger and the environment
lease into one deploy run:

    PLANNING -> APPLYING -> INVALIDATING -> VERIFYING -> terminal

Terminal states are SUCCEEDED, PARTIALLY_FAILED (content is correct at the
origin but CDN propagation is unconfirmed, or the run was cancelled
mid-apply) and FAILED (a required upload is missing, or the run never
started applying).

Known limitation: the remote state is read once at plan time.  With
``verify_preconditions`` off, an external change to the store between
planning and writing is not detected.  The store's per-object atomicity
is relied on; whole-tree atomicity is not provided.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone

from sitedeploy import __version__
from sitedeploy.clients import create_clients
from sitedeploy.clients.base import (
    InvalidationClient,
    InvalidationSubmitError,
    ObjectStoreClient,
    PreconditionFailedError,
    TransferError,
)
from sitedeploy.config import DeploySettings
from sitedeploy.core.env_lock import EnvironmentLock, EnvironmentLockedError
from sitedeploy.core.planner import PlanConflictError
from sitedeploy.core.planner import plan as compute_plan
from sitedeploy.core.production_guard import enforce_production_constraints
from sitedeploy.core.retry import RetriesExhaustedError, RetryPolicy, retry_call
from sitedeploy.core.run_ledger import DeployLedger
from sitedeploy.core.state_machine import DeployStateMachine
from sitedeploy.models.artifacts import ArtifactSet, RemoteObjectState
from sitedeploy.models.environment import EnvironmentDescriptor
from sitedeploy.models.plan import DeployAction, DeployPlan, InvalidationBatch, PlanEntry
from sitedeploy.models.policy import CachePolicy
from sitedeploy.models.reports import (
    DeployReport,
    DeployResult,
    InvalidationResult,
    InvalidationStatus,
    PathOutcome,
    PathResult,
)
from sitedeploy.models.states import DeployState

logger = logging.getLogger(__name__)


class DeployCancelledError(RuntimeError):
    """Raised by ``CancelToken.raise_if_cancelled``."""


class InvalidationTimeoutError(RuntimeError):
    """The CDN did not confirm an invalidation before the deadline.

    Not a hard failure: propagation may still complete asynchronously.
    """

    def __init__(self, invalidation_id: str, timeout: float) -> None:
        super().__init__(
            f"Invalidation {invalidation_id} not confirmed within {timeout:.0f}s"
        )
        self.invalidation_id = invalidation_id
        self.timeout = timeout


class CancelToken:
    """Cooperative cancellation flag shared between a caller and a run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise DeployCancelledError("Deploy run cancelled")


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"sd-{ts}-{uuid.uuid4().hex[:6]}"


class DeployOrchestrator:
    """Coordinates plan -> apply -> invalidate -> verify for one environment.

    Parameters
    ----------
    store:
        Object store the site is published to.
    cdn:
        CDN invalidation client in front of the store.
    environment:
        Target environment name; the lease key and the ledger tag.
    retry_policy:
        Backoff for object writes/deletes and invalidation submits.
    max_workers:
        Bound on concurrent object operations within one action class.
    poll_interval, verify_timeout:
        Invalidation status polling cadence and deadline, in seconds.
    verify_preconditions:
        Re-read each object's hash right before writing/deleting it and
        fail that path if it no longer matches what the plan saw.
    ledger, lock:
        Optional audit ledger and environment lease.
    sleep, clock:
        Injectable for tests; ``clock`` must be monotonic.
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        cdn: InvalidationClient,
        *,
        environment: str = "default",
        retry_policy: RetryPolicy | None = None,
        max_workers: int = 8,
        poll_interval: float = 5.0,
        verify_timeout: float = 600.0,
        verify_preconditions: bool = False,
        ledger: DeployLedger | None = None,
        lock: EnvironmentLock | None = None,
        lock_wait_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.cdn = cdn
        self.environment = environment
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_workers = max(max_workers, 1)
        self.poll_interval = poll_interval
        self.verify_timeout = verify_timeout
        self.verify_preconditions = verify_preconditions
        self.ledger = ledger
        self.lock = lock
        self._lock_wait = lock_wait_seconds
        self._sleep = sleep
        self._clock = clock
        self._lease_holder: str | None = None

    @classmethod
    def from_settings(
        cls,
        descriptor: EnvironmentDescriptor,
        settings: DeploySettings,
        *,
        store: ObjectStoreClient | None = None,
        cdn: InvalidationClient | None = None,
    ) -> DeployOrchestrator:
        """Build an orchestrator for ``descriptor`` wired per ``settings``.

        Runs the production guard first.  Clients are created from the
        descriptor with the settings' scoped credentials unless given.
        """
        enforce_production_constraints(settings)
        if store is None or cdn is None:
            default_store, default_cdn = create_clients(descriptor, settings.credentials())
            store = default_store if store is None else store
            cdn = default_cdn if cdn is None else cdn
        return cls(
            store,
            cdn,
            environment=descriptor.name,
            retry_policy=settings.retry_policy(),
            max_workers=settings.max_workers,
            poll_interval=settings.invalidation_poll_seconds,
            verify_timeout=settings.invalidation_timeout_seconds,
            verify_preconditions=settings.verify_preconditions,
            ledger=DeployLedger(settings.ledger_path),
            lock=EnvironmentLock(settings.lock_path, ttl_seconds=settings.lock_ttl_seconds),
            lock_wait_seconds=settings.lock_wait_seconds,
        )

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def plan(self, artifacts: ArtifactSet, remote_state: RemoteObjectState) -> DeployPlan:
        """Pure diff of ``artifacts`` against ``remote_state``."""
        return compute_plan(artifacts, remote_state)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(
        self,
        plan: DeployPlan,
        policy: CachePolicy,
        *,
        cancel: CancelToken | None = None,
    ) -> DeployResult:
        """Execute every upload, then every delete.

        Each object operation is retried independently; a failure is
        recorded against its path and never aborts sibling operations.
        Operations not yet started when ``cancel`` fires are marked
        CANCELLED.
        """
        cancel = cancel or CancelToken()
        outcomes: dict[str, PathResult] = {
            entry.path: PathResult(
                path=entry.path,
                action=DeployAction.SKIP,
                outcome=PathOutcome.SKIPPED,
                content_hash=entry.local_hash,
            )
            for entry in plan.skips
        }

        # Uploads strictly before deletes: a path still referenced by old
        # pages must not vanish before its replacement is live.
        outcomes.update(self._run_class(plan.uploads, lambda e: self._upload(e, policy), cancel))
        outcomes.update(self._run_class(plan.deletes, self._delete, cancel))

        results = tuple(outcomes[entry.path] for entry in plan.entries)
        cancelled = cancel.cancelled and any(
            r.outcome == PathOutcome.CANCELLED for r in results
        )
        result = DeployResult(results=results, cancelled=cancelled)
        logger.info(
            "Applied plan: %d uploaded, %d deleted, %d skipped, %d failed uploads, "
            "%d failed deletes",
            len(result.uploaded),
            len(result.deleted),
            len(plan.skips),
            len(result.failed_uploads),
            len(result.failed_deletes),
        )
        return result

    def _run_class(
        self,
        entries: list[PlanEntry],
        operation: Callable[[PlanEntry], int],
        cancel: CancelToken,
    ) -> dict[str, PathResult]:
        if not entries:
            return {}
        results: dict[str, PathResult] = {}
        workers = min(self.max_workers, len(entries))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sitedeploy") as pool:
            futures = [
                pool.submit(self._attempt, entry, operation, cancel) for entry in entries
            ]
            for future in as_completed(futures):
                result = future.result()
                results[result.path] = result
        return results

    def _attempt(
        self,
        entry: PlanEntry,
        operation: Callable[[PlanEntry], int],
        cancel: CancelToken,
    ) -> PathResult:
        if cancel.cancelled:
            return PathResult(path=entry.path, action=entry.action, outcome=PathOutcome.CANCELLED)
        self._renew_lease()
        try:
            attempts = operation(entry)
        except RetriesExhaustedError as exc:
            logger.error("%s %s failed: %s", entry.action.value, entry.path, exc)
            return PathResult(
                path=entry.path,
                action=entry.action,
                outcome=PathOutcome.FAILED,
                attempts=exc.attempts,
                error=str(exc.last_error),
            )
        if entry.action == DeployAction.UPLOAD:
            return PathResult(
                path=entry.path,
                action=entry.action,
                outcome=PathOutcome.UPLOADED,
                attempts=attempts,
                content_hash=entry.local_hash,
            )
        return PathResult(
            path=entry.path,
            action=entry.action,
            outcome=PathOutcome.DELETED,
            attempts=attempts,
        )

    def _check_precondition(self, entry: PlanEntry) -> None:
        # Absent and listed-without-hash both plan as "", so compare as "".
        current = self.store.head(entry.path) or ""
        # Our own hash being there already means an earlier attempt landed.
        if current != entry.remote_hash and not (current and current == entry.local_hash):
            raise PreconditionFailedError(
                f"{entry.path} changed since planning: "
                f"expected {entry.remote_hash or 'no hash'}, found {current or 'no hash'}"
            )

    def _upload(self, entry: PlanEntry, policy: CachePolicy) -> int:
        artifact = entry.artifact
        if artifact is None:
            raise ValueError(f"Upload entry without artifact: {entry.path}")
        cache_control = policy.resolve(entry.path)

        def _put() -> None:
            if self.verify_preconditions:
                self._check_precondition(entry)
            self.store.put(
                entry.path,
                artifact.content,
                content_hash=artifact.content_hash,
                cache_control=cache_control,
                content_type=artifact.content_type,
            )

        _, attempts = retry_call(
            _put,
            policy=self.retry_policy,
            retry_on=(TransferError,),
            give_up_on=(PreconditionFailedError,),
            sleep=self._sleep,
            label=f"upload {entry.path}",
        )
        logger.debug("Uploaded %s (%s)", entry.path, cache_control)
        return attempts

    def _delete(self, entry: PlanEntry) -> int:
        def _remove() -> None:
            if self.verify_preconditions:
                self._check_precondition(entry)
            self.store.delete(entry.path)

        _, attempts = retry_call(
            _remove,
            policy=self.retry_policy,
            retry_on=(TransferError,),
            give_up_on=(PreconditionFailedError,),
            sleep=self._sleep,
            label=f"delete {entry.path}",
        )
        logger.debug("Deleted %s", entry.path)
        return attempts

    # ------------------------------------------------------------------
    # Invalidate and verify
    # ------------------------------------------------------------------

    def invalidate(
        self, changed_paths: set[str], *, run_id: str | None = None
    ) -> InvalidationResult:
        """Submit one invalidation batch for ``changed_paths``.

        Each call uses a fresh caller reference, so two calls are two
        independent requests; retries within a call reuse the reference
        and cannot create a duplicate invalidation.  Submit failures are
        retried and, once exhausted, reported rather than raised.
        """
        if not changed_paths:
            return InvalidationResult()

        batch = InvalidationBatch.from_paths(
            set(changed_paths),
            caller_reference=f"{run_id or 'adhoc'}-{uuid.uuid4().hex[:12]}",
        )
        try:
            invalidation_id, attempts = retry_call(
                lambda: self.cdn.submit(list(batch.paths), batch.caller_reference),
                policy=self.retry_policy,
                retry_on=(InvalidationSubmitError,),
                sleep=self._sleep,
                label=f"invalidate {len(batch.paths)} path(s)",
            )
        except RetriesExhaustedError as exc:
            logger.error("Invalidation submit failed: %s", exc)
            return InvalidationResult(
                paths=batch.paths,
                submitted=False,
                caller_reference=batch.caller_reference,
                attempts=exc.attempts,
                error=str(exc.last_error),
            )

        logger.info("Invalidation %s submitted for %d path(s)", invalidation_id, len(batch.paths))
        return InvalidationResult(
            paths=batch.paths,
            submitted=True,
            invalidation_id=invalidation_id,
            caller_reference=batch.caller_reference,
            status=InvalidationStatus.PENDING,
            attempts=attempts,
        )

    def wait_for_invalidation(self, invalidation: InvalidationResult) -> InvalidationResult:
        """Poll until the CDN reports DONE or FAILED.

        Raises InvalidationTimeoutError once ``verify_timeout`` elapses.
        Renews the environment lease on every poll; raises
        EnvironmentLockedError if the lease was lost.
        Status lookups that error are treated as still pending.
        """
        deadline = self._clock() + self.verify_timeout
        while True:
            self._renew_lease()
            try:
                status = self.cdn.status(invalidation.invalidation_id)
            except InvalidationSubmitError as exc:
                logger.warning("Invalidation status lookup failed: %s", exc)
                status = InvalidationStatus.PENDING
            if status != InvalidationStatus.PENDING:
                return invalidation.model_copy(update={"status": status})
            if self._clock() >= deadline:
                raise InvalidationTimeoutError(invalidation.invalidation_id, self.verify_timeout)
            self._sleep(self.poll_interval)

    def verify(self, invalidation: InvalidationResult) -> InvalidationResult:
        """``wait_for_invalidation`` with the timeout folded into the result."""
        try:
            return self.wait_for_invalidation(invalidation)
        except InvalidationTimeoutError as exc:
            logger.warning("%s", exc)
            return invalidation.model_copy(update={"timed_out": True, "error": str(exc)})

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def deploy(
        self,
        artifacts: ArtifactSet,
        remote_state: RemoteObjectState | None,
        policy: CachePolicy,
        *,
        cancel: CancelToken | None = None,
        wait: bool = True,
        run_id: str | None = None,
    ) -> DeployReport:
        """Run plan -> apply -> invalidate -> verify under the environment lease.

        ``remote_state`` of None lists the store (inside the lease).

        Raises
        ------
        PlanConflictError
            Malformed artifact set; nothing was changed.
        EnvironmentLockedError
            Another run holds this environment.
        """
        run_id = run_id or new_run_id()
        cancel = cancel or CancelToken()
        if self.lock is None:
            return self._run(run_id, artifacts, remote_state, policy, cancel, wait)
        with self.lock.hold(self.environment, run_id, wait_seconds=self._lock_wait):
            self._lease_holder = run_id
            try:
                return self._run(run_id, artifacts, remote_state, policy, cancel, wait)
            finally:
                self._lease_holder = None

    def _renew_lease(self) -> None:
        """Extend the environment lease held by the active run, if any.

        Raises EnvironmentLockedError if the lease was lost to another run.
        """
        if self.lock is None or self._lease_holder is None:
            return
        if not self.lock.renew(self.environment, self._lease_holder):
            raise EnvironmentLockedError(
                self.environment, self.lock.holder(self.environment) or "?"
            )

    def _run(
        self,
        run_id: str,
        artifacts: ArtifactSet,
        remote_state: RemoteObjectState | None,
        policy: CachePolicy,
        cancel: CancelToken,
        wait: bool,
    ) -> DeployReport:
        started_at = datetime.now(timezone.utc)
        machine = DeployStateMachine(
            run_id, self.environment, ledger=self.ledger, tool_version=__version__
        )
        logger.info("Run %s: deploying %d artifact(s) to %s", run_id, len(artifacts), self.environment)

        # PLANNING: no side effects
        try:
            if remote_state is None:
                remote_state = self.store.list()
            deploy_plan = self.plan(artifacts, remote_state)
        except (PlanConflictError, TransferError) as exc:
            machine.transition(DeployState.FAILED, detail={"error": str(exc)})
            raise

        plan_hash = deploy_plan.plan_hash
        notes: list[str] = []

        def finish(
            state: DeployState,
            paths: tuple[PathResult, ...],
            resulting: RemoteObjectState,
            invalidation: InvalidationResult | None = None,
            error: str = "",
        ) -> DeployReport:
            report = DeployReport(
                run_id=run_id,
                environment=self.environment,
                state=state,
                plan_hash=plan_hash,
                paths=paths,
                invalidation=invalidation,
                resulting_state=resulting,
                notes=list(notes),
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
            )
            detail = {k: str(v) for k, v in report.counts().items()}
            if invalidation is not None and invalidation.invalidation_id:
                detail["invalidation_id"] = invalidation.invalidation_id
            if error:
                detail["error"] = error
            machine.transition(state, plan_hash=plan_hash, detail=detail)
            return report

        try:
            cancel.raise_if_cancelled()
        except DeployCancelledError as exc:
            notes.append("Run cancelled before applying; nothing was changed.")
            paths = tuple(
                PathResult(
                    path=e.path,
                    action=e.action,
                    outcome=PathOutcome.SKIPPED
                    if e.action == DeployAction.SKIP
                    else PathOutcome.CANCELLED,
                )
                for e in deploy_plan.entries
            )
            return finish(DeployState.FAILED, paths, remote_state, error=str(exc))

        def enter(state: DeployState, detail: dict[str, str] | None = None) -> None:
            # Every step forward re-checks that this run still owns the environment.
            try:
                self._renew_lease()
            except EnvironmentLockedError as exc:
                machine.transition(DeployState.FAILED, plan_hash=plan_hash, detail={"error": str(exc)})
                raise
            machine.transition(state, plan_hash=plan_hash, detail=detail)

        # APPLYING
        enter(
            DeployState.APPLYING,
            {k: str(v) for k, v in deploy_plan.summary().items()},
        )
        try:
            result = self.apply(deploy_plan, policy, cancel=cancel)
        except Exception as exc:
            machine.transition(DeployState.FAILED, plan_hash=plan_hash, detail={"error": str(exc)})
            raise

        resulting = remote_state.advance(
            uploaded={r.path: r.content_hash for r in result.uploaded},
            deleted=[r.path for r in result.deleted],
        )
        upload_failed = bool(result.failed_uploads)
        if upload_failed:
            notes.append(
                f"{len(result.failed_uploads)} upload(s) failed: "
                + ", ".join(r.path for r in result.failed_uploads)
            )
        for failed in result.failed_deletes:
            # Stale extra objects are tolerated; missing required ones are not.
            logger.warning("Delete of %s failed (non-fatal): %s", failed.path, failed.error)
            notes.append(f"Delete of {failed.path} failed (non-fatal): {failed.error}")

        if result.cancelled:
            notes.append(
                "Run cancelled while applying; objects already written were not "
                "rolled back and no CDN invalidation was submitted."
            )
            final = DeployState.FAILED if upload_failed else DeployState.PARTIALLY_FAILED
            return finish(final, result.results, resulting)

        if not result.has_changes:
            final = DeployState.FAILED if upload_failed else DeployState.SUCCEEDED
            return finish(final, result.results, resulting)

        # INVALIDATING: also for failed runs, as a best-effort pass over
        # the paths that did change.
        enter(DeployState.INVALIDATING)
        invalidation = self.invalidate(result.changed_paths, run_id=run_id)

        if not invalidation.submitted:
            notes.append(
                "CDN invalidation could not be submitted; propagation unconfirmed. "
                "Cached copies may be served until they expire."
            )
            final = DeployState.FAILED if upload_failed else DeployState.PARTIALLY_FAILED
            return finish(final, result.results, resulting, invalidation)

        if upload_failed:
            notes.append("Best-effort invalidation submitted for the paths that changed.")
            return finish(DeployState.FAILED, result.results, resulting, invalidation)

        if not wait:
            notes.append(
                f"Not waiting for invalidation {invalidation.invalidation_id}; "
                "CDN propagation unconfirmed."
            )
            return finish(DeployState.PARTIALLY_FAILED, result.results, resulting, invalidation)

        # VERIFYING
        enter(DeployState.VERIFYING)
        try:
            invalidation = self.verify(invalidation)
        except EnvironmentLockedError as exc:
            machine.transition(DeployState.FAILED, plan_hash=plan_hash, detail={"error": str(exc)})
            raise
        if invalidation.confirmed:
            return finish(DeployState.SUCCEEDED, result.results, resulting, invalidation)

        if invalidation.timed_out:
            notes.append(
                f"CDN propagation unconfirmed: invalidation {invalidation.invalidation_id} "
                f"did not complete within {self.verify_timeout:.0f}s and may still "
                "complete asynchronously."
            )
        else:
            notes.append(
                f"CDN propagation unconfirmed: invalidation {invalidation.invalidation_id} "
                "reported failure."
            )
        return finish(DeployState.PARTIALLY_FAILED, result.results, resulting, invalidation)
