# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# background pack assembly and the expired-pack sweep.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (assembly, cleanup)
# - config.py: Worker and beat settings
#
# Usage:
#   # Start worker (both queues)
#   celery -A workers.celery_app worker -Q default,packs --loglevel=info
#
#   # Start the periodic sweep scheduler
#   celery -A workers.celery_app beat --loglevel=info
#
#   # Submit task (from API)
#   from workers.tasks import assemble_pack
#   assemble_pack.delay(order_id, pack_id)
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
