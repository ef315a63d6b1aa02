from types import SimpleNamespace

from blog_api.api.schemas.import_job import QueueTask
from blog_api.services.ingestion_queue import IMPORTS_QUEUE, IngestionQueue
from blog_api.workers.tasks import import_posts
from blog_api.workers.tasks.import_posts import build_processor, import_posts_task


class FakeTask:
    def __init__(self):
        self.calls = []

    def apply_async(self, args=None, queue=None):
        self.calls.append((args, queue))
        return SimpleNamespace(id="celery-task-1")


def test_enqueue_sends_minimal_payload_to_imports_queue():
    task = FakeTask()

    task_id = IngestionQueue(task).enqueue(QueueTask(job_id="job-1", file_path="/data/x.csv"))

    assert task_id == "celery-task-1"
    assert task.calls == [(("job-1", "/data/x.csv"), IMPORTS_QUEUE)]


def test_worker_task_is_routed_to_imports_queue():
    routes = import_posts_task.app.conf.task_routes

    assert routes[import_posts_task.name] == {"queue": IMPORTS_QUEUE}
    assert import_posts_task.app.conf.task_acks_late is True
    assert import_posts_task.app.conf.worker_prefetch_multiplier == 1


def test_worker_task_runs_processor(monkeypatch, make_job, write_csv, job_store, notifier):
    monkeypatch.setattr(
        "blog_api.workers.tasks.import_posts.ProgressNotifier", lambda client: notifier
    )
    path = write_csv("title,content\nOne,Body\nTwo,Body\n")
    job = make_job(path)

    result = import_posts_task.run(job.id, str(path))

    assert result == {
        "job_id": job.id,
        "status": "COMPLETED",
        "total": 2,
        "processed": 2,
        "skipped": 0,
        "errors": 0,
    }
    assert job_store.get(job.id).status.value == "COMPLETED"
    assert notifier.events[-1].processed == 2


def test_task_runs_share_the_worker_redis_client():
    first, second = build_processor(), build_processor()

    assert first.notifier._redis is import_posts.redis_client
    assert second.notifier._redis is import_posts.redis_client
