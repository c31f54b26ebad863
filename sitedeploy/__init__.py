"""sitedeploy: static-site deploy orchestrator.

Build artifacts -> object store -> CDN invalidation -> verified, with:
  - Pure, deterministic planning (upload / skip / delete by content hash)
  - Per-prefix Cache-Control policy, longest prefix wins
  - Uploads before deletes, bounded worker pool, per-object retries
  - Explicit run state machine recorded in a hash-chained SQLite ledger
  - One run at a time per environment (SQLite lease)
  - S3 + CloudFront, local-directory and in-memory backends
"""

__version__ = "0.1.0"
__description__ = "Static-site deploy orchestrator: object store staging and CDN invalidation"

from sitedeploy.core.orchestrator import DeployOrchestrator
from sitedeploy.cli.app import app as cli

__all__ = ["DeployOrchestrator", "cli", "__version__"]
