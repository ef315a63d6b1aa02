import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

_workdir = Path(tempfile.mkdtemp(prefix="blog-api-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_workdir / 'test.db'}"
os.environ["UPLOADS_DIR"] = str(_workdir / "uploads")
os.environ["REDIS_URL"] = "redis://localhost:6379/15"

from blog_api.api.dependencies.imports import (  # noqa: E402
    get_ingestion_queue,
    get_progress_subscriber,
)
from blog_api.db.base import Base  # noqa: E402
from blog_api.db.models import User  # noqa: E402
from blog_api.db.session import SessionLocal, engine  # noqa: E402
from blog_api.main import create_app  # noqa: E402
from blog_api.services.csv_import import CsvBatchProcessor  # noqa: E402
from blog_api.services.job_store import JobStore  # noqa: E402
from blog_api.storage.uploads import UploadStorage  # noqa: E402


class RecordingNotifier:
    """Stands in for the Redis-backed notifier and keeps every event."""

    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)


class RecordingQueue:
    def __init__(self):
        self.tasks = []

    def enqueue(self, item):
        self.tasks.append(item)
        return f"task-{len(self.tasks)}"


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def session_factory():
    return SessionLocal


@pytest.fixture()
def job_store(session_factory):
    return JobStore(session_factory)


@pytest.fixture()
def owner(session_factory):
    with session_factory() as session:
        user = User(email="author@example.com", name="Author")
        session.add(user)
        session.commit()
        return user.id


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def queue():
    return RecordingQueue()


@pytest.fixture()
def storage(tmp_path):
    return UploadStorage(tmp_path / "uploads")


@pytest.fixture()
def write_csv(tmp_path):
    def _write(text: str, name: str = "posts.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def make_job(job_store, owner):
    def _make(path: Path):
        return job_store.create(filename=path.name, owner_id=owner, file_path=str(path))

    return _make


@pytest.fixture()
def make_processor(job_store, session_factory, notifier):
    def _make(batch_size: int = 1000, store=None):
        return CsvBatchProcessor(
            job_store=store or job_store,
            session_factory=session_factory,
            notifier=notifier,
            batch_size=batch_size,
        )

    return _make


@pytest.fixture()
def client(queue):
    app = create_app()
    app.dependency_overrides[get_ingestion_queue] = lambda: queue
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def override_subscriber(client):
    def _override(subscriber):
        client.app.dependency_overrides[get_progress_subscriber] = lambda: subscriber

    return _override
