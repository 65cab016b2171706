"""
Configurable thresholds and weights for grouping and scoring photos.
Tune these without touching the main logic.
"""

# --- Grouping (any one signal links two photos) ---
PHASH_THRESHOLD = 0.85              # Min pHash similarity (1 - hamming/64)
SECONDS_SEPARATED = 10              # Burst window in seconds
COSINE_SIMILARITY_THRESHOLD = 0.8   # Embedding similarity must be strictly above this
COSINE_MAX_MINUTES = 60 * 24        # Embedding links only within this window (same day)
INCLUDE_SINGLETONS = True           # Emit one-photo groups so every photo is scored
PHASH_BITS = 64

# --- Composite weights (need not sum to 1.0; the score is clamped) ---
WEIGHT_BRIGHTNESS = 0.05
WEIGHT_CONTRAST = 0.10
WEIGHT_SHARPNESS = 0.10
WEIGHT_FACE_PRESENCE = 0.15
WEIGHT_EYES_OPEN = 0.15
WEIGHT_SMILING = 0.45

# --- Image analysis ---
ANALYSIS_MAX_DIM = 256         # Downscale longest side to this before analysis
FULL_CONTRAST_STDDEV = 0.5     # Luma stddev treated as "full" contrast
SHARPNESS_K = 0.01             # energy / (energy + k)

# --- Face signals ---
MIN_DETECTION_CONFIDENCE = 0.3
FACE_CONFIDENCE_WEIGHT = 0.8   # facePresence = 0.8 * conf + 0.2 * sqrt(area)
FACE_AREA_WEIGHT = 0.2
EAR_CLOSED = 0.20              # At/below: eyes closed
EAR_OPEN = 0.28                # At/above: eyes open
SMILE_EXPONENT = 0.8
HAPPY_DIVISOR = 100.0          # DeepFace returns 0-100
DETECTOR_DET_SIZE = (640, 640)

# --- Embeddings (OpenCLIP) ---
CLIP_MODEL = "ViT-B-32"
CLIP_PRETRAINED = "laion2b_s34b_b79k"

# --- Scoring runtime ---
SCORE_MAX_WORKERS = 4
PHOTO_TIMEOUT_SECONDS = 60.0   # None disables the per-photo bound

# --- Pipeline artifacts ---
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".heic", ".heif"}
GROUPS_FILENAME = "groups.json"
SCORED_GROUPS_FILENAME = "groups.scored.json"

# --- Review API ---
REVIEW_HOST = "127.0.0.1"
REVIEW_PORT = 8757
