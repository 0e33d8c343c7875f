"""Run ARQ notification worker. Usage: python -m stshield.worker.run_worker"""

from arq import run_worker
from arq.worker import func

from stshield.worker.tasks import get_redis_settings, notify_amount_mismatch, notify_policy_created, shutdown, startup


class WorkerSettings:
    redis_settings = get_redis_settings()
    functions = [
        # Emails already retry with backoff inside the job
        func(notify_policy_created, name="notify_policy_created", max_tries=1),
        func(notify_amount_mismatch, name="notify_amount_mismatch", max_tries=1),
    ]
    on_startup = startup
    on_shutdown = shutdown


def main() -> None:
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
