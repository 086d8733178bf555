import argparse

from .config import StabilityConfig

card_capture_parser = argparse.ArgumentParser(
    description="Card Capture - automatic ID card capture from a live camera"
)

card_capture_parser.add_argument(
    "--camera",
    help="Camera port. Auto-detected when omitted.",
    type=int,
    default=None,
)
card_capture_parser.add_argument(
    "--out",
    help="Directory where captured card images are written.",
    default="out/cards",
)
card_capture_parser.add_argument(
    "--required-frames",
    help="Consecutive stable frames before an automatic capture.",
    type=int,
    default=StabilityConfig.REQUIRED_FRAMES,
)
card_capture_parser.add_argument(
    "--tolerance",
    help="Per-corner movement (normalized units) still counted as stable.",
    type=float,
    default=StabilityConfig.CORNER_TOLERANCE,
)
card_capture_parser.add_argument(
    "--no-fallback",
    help="Disable the contrast-boosted fallback detection pass.",
    action="store_true",
    default=False,
)
card_capture_parser.add_argument(
    "--headless",
    help="Run without a preview window (stop with Ctrl+C).",
    action="store_true",
    default=False,
)
card_capture_parser.add_argument(
    "--debug",
    help="Enable debug logging.",
    action="store_true",
    default=False,
)

get_args = card_capture_parser.parse_args
