"""Stream an audio file to the ingest API in fixed-size PCM chunks."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from src.client.uplink import UplinkClient, UplinkError, load_pcm16


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("audio", type=Path, help="WAV/FLAC file to send")
    parser.add_argument("--url", default="http://127.0.0.1:8080", help="Ingest API base URL")
    parser.add_argument("--uid", default=None, help="Client identifier for server logs")
    parser.add_argument("--chunk-seconds", type=float, default=1.0)
    parser.add_argument("--realtime", action="store_true", help="Pace chunks at playback speed")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)
    pcm, sample_rate = load_pcm16(args.audio)
    client = UplinkClient(args.url, uid=args.uid)
    try:
        filenames = client.stream_pcm(
            pcm, sample_rate, args.chunk_seconds, realtime=args.realtime
        )
    except UplinkError as exc:
        logging.error("upload aborted: %s", exc)
        return 1
    finally:
        client.close()
    for name in dict.fromkeys(filenames):
        print(name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
