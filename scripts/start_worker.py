#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker for pack assembly and the expired-pack sweep.
#
# Usage:
#   # Worker only (run beat separately in production)
#   python scripts/start_worker.py
#
#   # Worker with an embedded beat scheduler (single-process development)
#   python scripts/start_worker.py --beat
#
#   # Or use Celery CLI directly
#   celery -A workers.celery_app worker -Q default,packs --loglevel=info
#
# Prerequisites:
#   - Redis must be running (REDIS_URL)
#   - Environment variables must be set (.env file)
# =============================================================================

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from workers.celery_app import celery_app


def main():
    """Start the Celery worker."""
    embed_beat = "--beat" in sys.argv[1:]

    print("=" * 60)
    print("PackShop Celery Worker")
    print("=" * 60)
    print()
    print("Queues: default, packs")
    if embed_beat:
        print("Beat: expired-pack sweep enabled in this process")
    print("Press Ctrl+C to stop")
    print()

    argv = [
        "worker",
        "--loglevel=info",
        "--queues=default,packs",
        "--concurrency=2",  # 2 worker processes
    ]
    if embed_beat:
        argv.append("--beat")

    celery_app.worker_main(argv)


if __name__ == "__main__":
    main()
