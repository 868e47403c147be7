#!/usr/bin/env python3
"""Play a chord on the offline host, print its spectrum and record it.

Exercises the whole tap -> analyse -> capture path without a browser.

Usage:
    python scripts/offline_capture.py                          # A minor, 2s, ogg/opus
    python scripts/offline_capture.py --freqs 55 110 --waveform sawtooth
    python scripts/offline_capture.py --pattern 'setcpm(90) s("bd").slow(3)' --full
    python scripts/offline_capture.py --mime audio/wav --output take.wav
"""

import argparse
import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from strudeltap.config import Settings, settings
from strudeltap.graph.offline import ENCODINGS, OfflineHost, OfflineTransport
from strudeltap.session import IntrospectionSession

logger = logging.getLogger("offline_capture")


async def run(args) -> int:
    config = Settings(capture_mime_types=[args.mime], capture_stop_timeout=10.0)
    host = OfflineHost(sample_rate=args.sample_rate)
    voices = [host.create_oscillator(f, args.waveform, amplitude=0.8 / len(args.freqs))
              for f in args.freqs]
    transport = OfflineTransport(host, voices, pattern=args.pattern)

    async with IntrospectionSession(host, config) as session:
        await transport.play()
        # Let the analyser see a full window of audio.
        await asyncio.sleep(0.1)
        print(json.dumps(session.analyze(), indent=2))

        if args.full:
            result = await session.record_full_pattern(transport)
        else:
            result = await session.record_timed(args.seconds)

        if not result.get("success"):
            logger.error(result.get("error"))
            return 1

        path = session.save_recording(result, args.output)
        summary = {k: v for k, v in result.items() if k != "audioData"}
        print(json.dumps(summary, indent=2))
        logger.info(f"Wrote {result['sizeBytes']} bytes to {path}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Offline tap/capture demo")
    parser.add_argument("--freqs", type=float, nargs="+", default=[220.0, 261.63, 329.63])
    parser.add_argument("--waveform", default="sine", choices=["sine", "square", "sawtooth", "triangle"])
    parser.add_argument("--seconds", type=float, default=2.0)
    parser.add_argument("--pattern", default="", help="Pattern text used by --full")
    parser.add_argument("--full", action="store_true", help="Record one estimated pattern loop")
    parser.add_argument("--mime", default="audio/ogg;codecs=opus", choices=sorted(ENCODINGS))
    parser.add_argument("--sample-rate", type=int, default=settings.offline_sample_rate)
    parser.add_argument("--output", default="capture.ogg")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(name)s %(levelname)s: %(message)s")
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
