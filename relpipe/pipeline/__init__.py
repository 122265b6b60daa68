"""Release pipeline.

Stages, leaves first:
- version: trigger reference -> ReleaseTag
- build: one job per target (build -> package -> sign -> store)
- changelog: commit subjects since the previous tag
- publish: join on every job, render the body, create the draft release

The stage graph is assembled in `release` and executed by `dag.Coordinator`.
"""

from __future__ import annotations
