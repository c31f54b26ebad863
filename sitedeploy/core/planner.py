"""Deploy planning — diff an ArtifactSet against the published RemoteObjectState.

``plan`` is a pure function: no I/O, no clock, no randomness.  Identical
inputs always produce an identical DeployPlan (and identical plan hash).
"""

from __future__ import annotations

import logging

from sitedeploy.models.artifacts import ArtifactSet, PlanConflictError, RemoteObjectState
from sitedeploy.models.plan import DeployAction, DeployPlan, PlanEntry

logger = logging.getLogger(__name__)

__all__ = ["PlanConflictError", "plan"]


def plan(artifacts: ArtifactSet, remote_state: RemoteObjectState) -> DeployPlan:
    """Compute the (path, action) pairs that converge the store onto ``artifacts``.

    - upload: path absent from ``remote_state`` or its hash differs
    - skip:   hash matches
    - delete: published path absent from ``artifacts``

    Uploads and skips keep build order; deletes follow, sorted by path.

    Raises
    ------
    PlanConflictError
        If the artifact set has duplicate or non-relative paths.
    """
    artifacts.validate_paths()

    entries: list[PlanEntry] = []
    for artifact in artifacts:
        remote_hash = remote_state.get(artifact.path)
        action = (
            DeployAction.SKIP
            if remote_hash == artifact.content_hash
            else DeployAction.UPLOAD
        )
        entries.append(
            PlanEntry(
                path=artifact.path,
                action=action,
                artifact=artifact,
                remote_hash=remote_hash or "",
            )
        )

    local_paths = set(artifacts.paths)
    for path in remote_state.paths:
        if path not in local_paths:
            entries.append(
                PlanEntry(
                    path=path,
                    action=DeployAction.DELETE,
                    remote_hash=remote_state.objects[path],
                )
            )

    result = DeployPlan(entries=tuple(entries))
    logger.debug("Planned %s (plan_hash=%s)", result.summary(), result.plan_hash[:12])
    return result
