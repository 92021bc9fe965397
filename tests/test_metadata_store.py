import json
from datetime import datetime, timezone

import pytest

from src.segment_store.errors import BackendUnavailable, MetadataConflict, MetadataCorrupt
from src.segment_store.metadata_store import DEFAULT_METADATA_KEY, MetadataStore
from src.segment_store.models import SegmentMetadata


def test_load_returns_none_before_first_segment(blobs):
    assert MetadataStore(blobs).load() is None


def test_save_writes_rfc3339_json(blobs, now):
    store = MetadataStore(blobs)
    store.save(SegmentMetadata(filename="a.wav", last_write_time=now, current_size=320000))
    raw = json.loads(blobs.read(DEFAULT_METADATA_KEY).data)
    assert raw == {
        "filename": "a.wav",
        "last_write_time": "2024-11-01T09:30:15Z",
        "current_size": 320000,
    }
    assert blobs.content_type(DEFAULT_METADATA_KEY) == "application/json"


def test_roundtrip_carries_generation(blobs, now):
    store = MetadataStore(blobs, key="stream.json")
    generation = store.save(
        SegmentMetadata(filename="a.wav", last_write_time=now, current_size=2, sample_rate=8000)
    )
    loaded = store.load()
    assert loaded.filename == "a.wav"
    assert loaded.current_size == 2
    assert loaded.sample_rate == 8000
    assert loaded.last_write_time == now
    assert loaded.generation == generation


def test_reads_records_with_nanosecond_timestamps(blobs):
    blobs.write(
        DEFAULT_METADATA_KEY,
        b'{"filename":"x.wav","last_write_time":"2024-11-01T10:30:15.123456789+01:00","current_size":4}\n',
    )
    loaded = MetadataStore(blobs).load()
    assert loaded.last_write_time == datetime(2024, 11, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)
    assert loaded.sample_rate is None


@pytest.mark.parametrize(
    "payload",
    [b"not json", b'{"filename": "x.wav"}', b'{"filename":"x.wav","last_write_time":"2024-11-01T00:00:00Z","current_size":-1}'],
)
def test_undecodable_record_is_corrupt(blobs, payload):
    blobs.write(DEFAULT_METADATA_KEY, payload)
    with pytest.raises(MetadataCorrupt):
        MetadataStore(blobs).load()


def test_stale_generation_conflicts(blobs, now):
    store = MetadataStore(blobs)
    first = store.save(SegmentMetadata(filename="a.wav", last_write_time=now, current_size=0))
    store.save(SegmentMetadata(filename="b.wav", last_write_time=now, current_size=0), if_generation_match=first)
    with pytest.raises(MetadataConflict):
        store.save(
            SegmentMetadata(filename="c.wav", last_write_time=now, current_size=0),
            if_generation_match=first,
        )
    with pytest.raises(MetadataConflict):
        store.save(
            SegmentMetadata(filename="d.wav", last_write_time=now, current_size=0),
            if_generation_match=0,
        )
    assert store.load().filename == "b.wav"


def test_backend_errors_propagate(now):
    class _Down:
        def read(self, key):
            raise BackendUnavailable("connection refused")

        def write(self, key, data, **kwargs):
            raise BackendUnavailable("connection refused")

    store = MetadataStore(_Down())
    with pytest.raises(BackendUnavailable):
        store.load()
    with pytest.raises(BackendUnavailable):
        store.save(SegmentMetadata(filename="a.wav", last_write_time=now, current_size=0))
