"""arq worker settings module.

Import path for arq CLI: arq roundup.workers.settings.WorkerSettings
"""

from __future__ import annotations

from roundup.workers.deadline_worker import WorkerSettings

__all__ = ["WorkerSettings"]
