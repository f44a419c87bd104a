import argparse
import asyncio
import logging

import config
from app import SlideshowApp
from media_ingest import RawFile


def main(argv=None):
    ap = argparse.ArgumentParser(description="Play a folder of photos as a slideshow")
    ap.add_argument("images", nargs="+", help="image files, shown in the given order")
    ap.add_argument("--music", help="audio file looped under the slideshow")
    ap.add_argument("--record", action="store_true",
                    help=f"record the show to {config.OUTPUT_NAME}")
    ap.add_argument("--random-exit", action="store_true",
                    help="fly slides off to random corners instead of sliding")
    ap.add_argument("--output-dir", default=config.OUTPUT_DIR)
    ap.add_argument("--fullscreen", action="store_true")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    config.FULLSCREEN = args.fullscreen

    files = []
    for p in args.images + ([args.music] if args.music else []):
        try:
            files.append(RawFile.from_path(p))
        except OSError as exc:
            logging.getLogger(__name__).warning("skipping %s: %s", p, exc)

    app = SlideshowApp(
        files,
        record=args.record,
        mode="random_exit" if args.random_exit else None,
        output_dir=args.output_dir,
    )
    asyncio.run(app.run())

if __name__ == "__main__":
    main()
