"""
Core configuration constants for Whisper inference.
These are transport-agnostic settings.
"""

# -------------------------
# AUDIO CONFIG
# -------------------------
SAMPLE_RATE = 16000
CHANNELS = 1
SAMPLE_WIDTH = 2  # bytes per sample (int16)
MAX_SECONDS = 30  # model context window
MAX_SAMPLES = MAX_SECONDS * SAMPLE_RATE

# -------------------------
# DECODING
# -------------------------
MAX_TOKENS = 100  # output sequence capacity, prefix included
TIME_STEP_S = 0.02  # seconds per timestamp token

# Special tokens (fixed by the model's training vocabulary)
END_OF_TEXT = 50257
START_OF_TRANSCRIPT = 50258
ENGLISH = 50259
GERMAN = 50261
FRENCH = 50265
TRANSLATE = 50358  # speech-to-text then translate to English
TRANSCRIBE = 50359  # speech-to-text in the spoken language
NO_TIME_STAMPS = 50363
START_TIME = 50364  # first timestamp token, <|0.00|>

LANGUAGE_TOKENS = {
    "en": ENGLISH,
    "de": GERMAN,
    "fr": FRENCH,
}
TASK_TOKENS = {
    "transcribe": TRANSCRIBE,
    "translate": TRANSLATE,
}

DEFAULT_LANGUAGE = "en"
DEFAULT_TASK = "transcribe"

# -------------------------
# MODEL FILES
# -------------------------
SPECTROGRAM_FILE = "log_mel_spectro.pt"
ENCODER_FILE = "audio_encoder.pt"
DECODER_FILE = "audio_decoder.pt"
VOCAB_FILE = "vocab.json"
DEFAULT_MODELS_DIR = "models"

# -------------------------
# UI
# -------------------------
TICK_SECONDS = 0.05  # one decode step per timer tick
