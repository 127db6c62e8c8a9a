import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    TESTING = False

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rooms
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "8"))

    # Game (one round per alphabet letter)
    TOTAL_ROUNDS = 26
    MIN_ANSWER_LENGTH = int(os.environ.get("MIN_ANSWER_LENGTH", "3"))
    MAX_ANSWER_LENGTH = int(os.environ.get("MAX_ANSWER_LENGTH", "64"))

    # Timers
    GRACE_DURATION_SEC = int(os.environ.get("GRACE_DURATION_SEC", "10"))
    SERVER_GRACE_TIMER = os.environ.get("SERVER_GRACE_TIMER", "0") == "1"
    # 0 disables auto-advance; the host clicks "next round" instead.
    ROUND_ADVANCE_DELAY_SEC = int(os.environ.get("ROUND_ADVANCE_DELAY_SEC", "0"))
