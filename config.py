# config.py
"""
Configuration settings for the slideshow presenter.
"""
FPS   = 30

# ── Playback pacing ────────────────────────────────────────────────────────

# Milliseconds between autoplay advances
AUTO_ADVANCE_MS = 4000

# Time budget per slide when recording (ms); capture length = slides × this
PER_ASSET_MS    = 4000

# ── Transitions ────────────────────────────────────────────────────────────

# "directional" (slide with the swipe) or "random_exit" (fly off to a corner)
TRANSITION_MODE = "directional"

# Horizontal travel of a directional slide, in pixels
SLIDE_DISTANCE  = 1000

# Exit palette for random_exit: (dx, dy, rotation°)
EXIT_POINTS = (
    (-1200, -1200, -90),
    ( 1200, -1200,  90),
    (-1200,  1200, -45),
    ( 1200,  1200,  45),
    (    0, -1500,   0),
    (    0,  1500, 180),
)

# Scale a random_exit slide grows in from
ENTER_SCALE     = 0.1

# How long one transition animation lasts on screen
TRANSITION_SEC  = 0.6

# ── Ingestion ──────────────────────────────────────────────────────────────

# Camera-native containers that must be re-encoded before display
CONVERT_SUFFIXES   = (".heic", ".heif")
CONVERT_MIME_TYPES = ("image/heic", "image/heif")
CONVERT_QUALITY    = 90

AUDIO_SUFFIXES     = (".mp3", ".ogg", ".wav", ".flac", ".m4a", ".aac")

# ── Capture / output ───────────────────────────────────────────────────────

OUTPUT_NAME    = "Memories.webm"
OUTPUT_DIR     = "."
OUTPUT_CODEC   = "libvpx"
OUTPUT_BITRATE = 2_000_000
CAPTURE_FPS    = 15

# ── Display settings ───────────────────────────────────────────────────────

FULLSCREEN    = False
WINDOWED_SIZE = (1280, 720)

# Background colour cycles with the slide index
BACKGROUNDS = (
    (255, 182, 193),
    (173, 216, 230),
    (144, 238, 144),
    (255, 228, 181),
)

# Minimum horizontal drag (px) that counts as a swipe
SWIPE_THRESHOLD = 100

# ── Overlay durations ──────────────────────────────────────────────────────

OVERLAY_DURATION = 3.0   # seconds to show the position badge after a change
ERROR_DURATION   = 4.0   # seconds to show a capture error
