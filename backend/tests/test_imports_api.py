import json

from blog_api.api.schemas.import_job import ProgressEvent
from blog_api.db.models import ImportStatus

CSV_TEXT = "title,content,type,published\nHello,World,POST,true\n,Missing,POST,false\n"


def _upload(client, owner_id, name="posts.csv", body=CSV_TEXT):
    return client.post(
        "/api/imports/csv",
        files={"file": (name, body.encode(), "text/csv")},
        data={"owner_id": owner_id},
    )


def _sse_payloads(text):
    return [
        json.loads(line[len("data: "):])
        for line in text.splitlines()
        if line.startswith("data: ") and line != "data: {}"
    ]


class FakeSubscriber:
    def __init__(self, events):
        self.events = events
        self.closed = False

    async def listen(self, job_id):
        for event in self.events:
            yield event

    async def aclose(self):
        self.closed = True


def test_upload_returns_pending_job_and_enqueues(client, owner, queue):
    response = _upload(client, owner)

    assert response.status_code == 202, response.text
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["filename"] == "posts.csv"
    assert body["owner_id"] == owner
    assert (body["total"], body["processed"], body["errors"]) == (0, 0, 0)
    assert [task.job_id for task in queue.tasks] == [body["id"]]


def test_upload_then_process_then_poll(client, owner, queue, make_processor):
    job_id = _upload(client, owner).json()["id"]

    make_processor().run(queue.tasks[0])

    response = client.get(f"/api/imports/{job_id}")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "COMPLETED"
    assert (body["total"], body["processed"], body["errors"]) == (2, 1, 1)
    assert body["progress"] == 100
    assert body["error_log"][0]["reason"] == "Missing title"


def test_status_polling_is_stable_between_updates(client, owner):
    job_id = _upload(client, owner).json()["id"]

    first = client.get(f"/api/imports/{job_id}").json()
    second = client.get(f"/api/imports/{job_id}").json()

    assert first == second


def test_upload_rejects_non_csv(client, owner, queue):
    response = _upload(client, owner, name="posts.txt")

    assert response.status_code == 400
    assert queue.tasks == []


def test_upload_requires_existing_owner(client, queue):
    response = _upload(client, "no-such-user")

    assert response.status_code == 404
    assert queue.tasks == []


def test_unknown_job_status_is_404(client):
    assert client.get("/api/imports/unknown").status_code == 404


def test_list_imports_filters(client, owner, queue, make_processor):
    first = _upload(client, owner).json()["id"]
    _upload(client, owner)
    make_processor().run(queue.tasks[0])

    all_jobs = client.get("/api/imports/", params={"owner_id": owner}).json()
    completed = client.get("/api/imports/", params={"status": "COMPLETED"}).json()

    assert len(all_jobs) == 2
    assert [job["id"] for job in completed] == [first]
    assert client.get("/api/imports/", params={"status": "BOGUS"}).status_code == 422


def test_stream_relays_events_and_closes(client, owner, override_subscriber):
    job_id = _upload(client, owner).json()["id"]
    subscriber = FakeSubscriber(
        [
            ProgressEvent(job_id=job_id, processed=0, total=2, errors=0, status=ImportStatus.PROCESSING),
            ProgressEvent(job_id=job_id, processed=1, total=2, errors=1, status=ImportStatus.COMPLETED),
        ]
    )
    override_subscriber(subscriber)

    response = client.get(f"/api/imports/{job_id}/stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    payloads = _sse_payloads(response.text)
    assert [p["status"] for p in payloads] == ["PROCESSING", "COMPLETED"]
    assert "event: close" in response.text
    assert subscriber.closed is True


def test_stream_for_finished_job_sends_final_state(client, owner, queue, make_processor, override_subscriber):
    job_id = _upload(client, owner).json()["id"]
    make_processor().run(queue.tasks[0])
    subscriber = FakeSubscriber([])
    override_subscriber(subscriber)

    response = client.get(f"/api/imports/{job_id}/stream")

    [payload] = _sse_payloads(response.text)
    assert payload == {"job_id": job_id, "processed": 1, "total": 2, "errors": 1, "status": "COMPLETED"}
    assert subscriber.closed is True


def test_stream_unknown_job_is_404(client, override_subscriber):
    subscriber = FakeSubscriber([])
    override_subscriber(subscriber)

    assert client.get("/api/imports/unknown/stream").status_code == 404
    assert subscriber.closed is True


def test_liveness(client):
    assert client.get("/health/live").json()["status"] == "ok"
