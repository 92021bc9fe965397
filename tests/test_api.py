import json

import pytest
from fastapi.testclient import TestClient

from src.api.deps.storage import get_blob_store, reset_blob_store_cache
from src.segment_store.blob_store import MemoryBlobStore
from src.segment_store.errors import BackendUnavailable
from src.segment_store.metadata_store import DEFAULT_METADATA_KEY
from src.segment_store.wav_header import HEADER_SIZE, decode_header


def _make_client(settings_overrides=None, store=None):
    from src.api.app import create_app
    from src.api.settings import APISettings, get_settings

    get_settings.cache_clear()  # type: ignore
    reset_blob_store_cache()
    values = {"blob_backend": "memory", "default_sample_rate": 16000}
    values.update(settings_overrides or {})
    settings = APISettings(**values)

    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    if store is not None:
        app.dependency_overrides[get_blob_store] = lambda: store
    return TestClient(app)


@pytest.fixture()
def api_client():
    store = MemoryBlobStore()
    return _make_client(store=store), store


def _segment_name(resp) -> str:
    prefix = "Audio bytes processed for file "
    assert resp.text.startswith(prefix)
    return resp.text[len(prefix) :]


def test_first_chunk_creates_segment(api_client):
    client, store = api_client
    resp = client.post("/v1/audio?sample_rate=16000&uid=device-1", content=b"\x01\x00" * 160000)
    assert resp.status_code == 200, resp.text
    assert resp.headers["content-type"].startswith("text/plain")
    name = _segment_name(resp)
    assert name.endswith(".wav")
    assert len(store.read(name).data) == 320044
    meta = json.loads(store.read(DEFAULT_METADATA_KEY).data)
    assert meta["filename"] == name
    assert meta["current_size"] == 320000


def test_followup_chunk_appends_to_same_file(api_client):
    client, store = api_client
    first = _segment_name(client.post("/", content=b"\x00" * 3200))
    second = _segment_name(client.post("/", content=b"\x00" * 1600))
    assert first == second
    blob = store.read(first).data
    assert len(blob) == HEADER_SIZE + 4800
    assert decode_header(blob).data_size == 4800


@pytest.mark.parametrize("raw", ["abc", "-5", "0", ""])
def test_bad_sample_rate_falls_back_to_default(api_client, raw):
    client, store = api_client
    resp = client.post(f"/v1/audio?sample_rate={raw}", content=b"\x00" * 64)
    assert resp.status_code == 200
    assert decode_header(store.read(_segment_name(resp)).data).sample_rate == 16000


def test_sample_rate_param_used_for_header(api_client):
    client, store = api_client
    resp = client.post("/v1/audio?sample_rate=8000", content=b"\x00" * 64)
    assert decode_header(store.read(_segment_name(resp)).data).sample_rate == 8000


def test_missing_bucket_is_server_error():
    client = _make_client({"blob_backend": "gcs", "gcs_bucket_name": None})
    resp = client.post("/v1/audio", content=b"\x00" * 10)
    assert resp.status_code == 500
    assert "GCS_BUCKET_NAME" in resp.text


def test_unknown_backend_is_server_error():
    client = _make_client({"blob_backend": "tape"})
    resp = client.post("/v1/audio", content=b"\x00" * 10)
    assert resp.status_code == 500
    assert "BLOB_BACKEND" in resp.text


def test_backend_failure_is_server_error():
    class _Down(MemoryBlobStore):
        def read(self, key):
            raise BackendUnavailable("connection reset")

    client = _make_client(store=_Down())
    resp = client.post("/v1/audio", content=b"\x00" * 10)
    assert resp.status_code == 500
    assert "connection reset" in resp.text


def test_corrupt_metadata_is_server_error(api_client):
    client, store = api_client
    store.write(DEFAULT_METADATA_KEY, b"garbage")
    resp = client.post("/v1/audio", content=b"\x00" * 10)
    assert resp.status_code == 500
    assert "metadata" in resp.text


def test_conflict_maps_to_409(api_client):
    client, store = api_client
    store.write("live.wav", b"\x00" * (HEADER_SIZE + 4))
    store.write(
        DEFAULT_METADATA_KEY,
        b'{"filename":"live.wav","last_write_time":"2999-01-01T00:00:00Z","current_size":4}',
    )

    original_write = store.write

    def racing_write(key, data, **kwargs):
        if key == "live.wav":
            original_write(key, b"\x00" * (HEADER_SIZE + 4))
        return original_write(key, data, **kwargs)

    before = store.read(DEFAULT_METADATA_KEY)
    store.write = racing_write
    resp = client.post("/v1/audio", content=b"\x00" * 10)
    assert resp.status_code == 409
    assert resp.headers["content-type"].startswith("text/plain")
    after = store.read(DEFAULT_METADATA_KEY)
    assert after.generation == before.generation
    assert after.data == before.data


def test_segment_ahead_of_metadata_rotates(api_client):
    client, store = api_client
    store.write("live.wav", b"\x00" * (HEADER_SIZE + 8))
    store.write(
        DEFAULT_METADATA_KEY,
        b'{"filename":"live.wav","last_write_time":"2999-01-01T00:00:00Z","current_size":4}',
    )
    resp = client.post("/v1/audio", content=b"\x00" * 10)
    assert resp.status_code == 200
    name = _segment_name(resp)
    assert name != "live.wav"
    assert len(store.read(name).data) == HEADER_SIZE + 10
    metrics = client.get("/metrics").text
    assert 'segment_rotations_total{reason="segment_mismatch"}' in metrics


def test_local_backend_persists_to_directory(tmp_path):
    client = _make_client({"blob_backend": "local", "local_blob_dir": str(tmp_path)})
    resp = client.post("/v1/audio", content=b"\x00" * 32)
    assert resp.status_code == 200
    assert (tmp_path / _segment_name(resp)).stat().st_size == HEADER_SIZE + 32
    assert (tmp_path / DEFAULT_METADATA_KEY).exists()


def test_health_reports_backend(api_client):
    client, _ = api_client
    resp = client.get("/healthz")
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["backend"] == "memory"
    assert body["bucket"] is None


def test_metrics_expose_ingest_counters(api_client):
    client, _ = api_client
    client.post("/v1/audio", content=b"\x00" * 8)
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "api_requests_total" in resp.text
    assert 'segment_ingest_total{outcome="created"}' in resp.text
    assert "segment_rotations_total" in resp.text
