"""Run the notification worker: `python -m infrastructure.tasks.worker`."""
from __future__ import annotations

from .config.celery import celery_app


def main() -> None:
    celery_app.worker_main(
        argv=["worker", "--hostname=notifications@%h", "--queues=notifications,default", "--loglevel=INFO"]
    )


if __name__ == "__main__":
    main()
