from __future__ import annotations

DEFAULT_PREFIX = "."

# Model tiers, best first. Demotion walks down this tuple on quota errors.
DEFAULT_MODEL_PRIMARY = "gpt-5.1"
DEFAULT_MODEL_FALLBACK1 = "gpt-5-mini"
DEFAULT_MODEL_FALLBACK2 = "gpt-5-nano"
DEFAULT_RESTORE_AFTER_SECONDS = 60 * 60
QUOTA_MARKERS = ("quota", "429", "rate limit", "rate_limit", "ratelimit", "resource_exhausted")
PROBE_PROMPT = "ping"

# Guild whitelist
TOP_GUILD_LIMIT = 8
RECENCY_BONUS_POINTS = 50.0
RECENCY_WINDOW_DAYS = 7
RESCORE_DEBOUNCE_SECONDS = 5.0
BOOTSTRAP_HISTORY_LIMIT = 50
BOOTSTRAP_PAUSE_SECONDS = 0.3

# Message cache / snipe
MSG_CACHE_LIMIT = 30
ATTACHMENT_MAX_BYTES = 8 * 1024 * 1024
DEFAULT_ATTACHMENT_EXT = ".png"
DOWNLOAD_MAX_AGE_SECONDS = 48 * 60 * 60
DOWNLOAD_SWEEP_INTERVAL_SECONDS = 12 * 60 * 60
OUTBOUND_TTL_SECONDS = 10 * 60
# Automated messages can be deleted long after they were sent. Past this
# window their delete echo is no longer recognised and may become a snipe.
OUTBOUND_ID_TTL_SECONDS = 7 * 24 * 60 * 60

# AFK
AFK_DEFAULT_REASON = "Busy"
AFK_AUTO_OFF_GRACE_SECONDS = 3.0
AFK_NOTICE_TTL_SECONDS = 1.0
AFK_IMAGE_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
AFK_IMAGE_MAX_BYTES = 10 * 1024 * 1024
AFK_REPLY_DELAY_RANGE = (0.6, 1.2)

# Presence
VALID_STATUSES = ("online", "idle", "dnd", "invisible")
STATUS_ALIASES = {"on": "online", "off": "invisible", "invis": "invisible", "busy": "dnd"}
STATUS_EMOJI = {"online": "🟢", "idle": "🟡", "dnd": "🔴", "invisible": "⚫"}
STATUS_LABEL = {
    "online": "Online",
    "idle": "Idle",
    "dnd": "Do Not Disturb",
    "invisible": "Invisible (Offline)",
}
PRESENCE_REASSERT_SECONDS = 2 * 60

# Commands
ASK_COOLDOWN_SECONDS = 5.0
TRANSLATE_COOLDOWN_SECONDS = 4.0
DEFAULT_TRANSLATE_LANG = "vi"
LOGS_DEFAULT_LIMIT = 10
LOGS_MAX_CHAT = 25
LOGS_MAX_CONSOLE = 50
PURGE_DEFAULT_AMOUNT = 5
PURGE_SCAN_LIMIT = 100
PURGE_PAUSE_SECONDS = 0.8
GHOST_DELETE_DELAY_SECONDS = 0.03
DISCORD_MAX_MESSAGE_LEN = 1900
