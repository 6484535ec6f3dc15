import os
import sqlite3
import asyncio
import time
import discord
from discord.ext import commands
from openai import OpenAI
from activity.ranker import GuildActivityRanker
from activity.store import fetch_guild_activity_sync
from activity.store import upsert_guild_activity_sync
from afk.service import AfkService
from ai.backend import make_openai_caller
from ai.persona import load_afk_persona
from ai.tiers import ModelTierController
from config.defaults import DEFAULT_MODEL_FALLBACK1
from config.defaults import DEFAULT_MODEL_FALLBACK2
from config.defaults import DEFAULT_MODEL_PRIMARY
from config.defaults import DEFAULT_PREFIX
from config.defaults import DEFAULT_RESTORE_AFTER_SECONDS
from config.defaults import DISCORD_MAX_MESSAGE_LEN
from config.defaults import MSG_CACHE_LIMIT
from config.defaults import TOP_GUILD_LIMIT
from config.env import env_flag
from config.env import env_int
from config.env import parse_id_set
from db.migrate import apply_sqlite_migrations
from db.migrate import list_schema_migrations_sync
from db.migrate import missing_columns_sync
from jobs.service import presence_loop as presence_loop_service
from jobs.service import sweep_loop as sweep_loop_service
from misc.cooldowns import Cooldowns
from misc.origin import OutboundTracker
from misc.runtime_wiring import wire_bot_runtime
from misc.session_log import SessionLog
from ops.service import OperatorService
from presence.service import PresenceService
from snipe.cache import MessageCache
from snipe.media import MediaStore
from snipe.store import clear_message_log_sync
from snipe.store import fetch_recent_message_logs_sync
from snipe.store import fetch_snipes_sync
from snipe.store import insert_message_log_sync
from snipe.store import upsert_snipe_sync
from state.store import get_json_state_sync
from state.store import set_json_state_sync

REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
STARTED_AT = time.time()

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")
if not OPENAI_API_KEY:
    raise RuntimeError("Missing OPENAI_API_KEY env var")

PREFIX = os.getenv("LURK_PREFIX", DEFAULT_PREFIX).strip() or DEFAULT_PREFIX
OWNER_USER_IDS = parse_id_set(os.getenv("LURK_OWNER_USER_IDS"))

MODEL_TIERS = (
    os.getenv("LURK_MODEL_PRIMARY", DEFAULT_MODEL_PRIMARY).strip() or DEFAULT_MODEL_PRIMARY,
    os.getenv("LURK_MODEL_FALLBACK1", DEFAULT_MODEL_FALLBACK1).strip() or DEFAULT_MODEL_FALLBACK1,
    os.getenv("LURK_MODEL_FALLBACK2", DEFAULT_MODEL_FALLBACK2).strip() or DEFAULT_MODEL_FALLBACK2,
)
RESTORE_AFTER_SECONDS = env_int("LURK_RESTORE_AFTER_SECONDS", DEFAULT_RESTORE_AFTER_SECONDS)

DB_PATH = os.getenv("LURK_DB_PATH", "lurk.db")
DOWNLOAD_DIR = os.getenv("LURK_DOWNLOAD_DIR", os.path.join(REPO_ROOT, "downloads"))
LOG_DIR = os.getenv("LURK_LOG_DIR", os.path.join(REPO_ROOT, "logs"))

TOP_LIMIT = env_int("LURK_TOP_GUILD_LIMIT", TOP_GUILD_LIMIT)
CACHE_LIMIT = env_int("LURK_MSG_CACHE_LIMIT", MSG_CACHE_LIMIT)
AFK_PERSONA_PATH = os.getenv("LURK_AFK_PERSONA_PATH", os.path.join(REPO_ROOT, "config", "afk_persona.yml"))
ENABLE_CONSOLE = env_flag("LURK_ENABLE_CONSOLE", True)
# ---- end config ----

session_log = SessionLog(LOG_DIR)
session_log.start()

print(f"[CFG] prefix={PREFIX!r} models={list(MODEL_TIERS)} restore_after={RESTORE_AFTER_SECONDS}s")
print(f"[CFG] top_guilds={TOP_LIMIT} msg_cache={CACHE_LIMIT} console={ENABLE_CONSOLE}")

AFK_PERSONA, _afk_persona_warning = load_afk_persona(AFK_PERSONA_PATH)
if _afk_persona_warning:
    print(f"[CFG] {_afk_persona_warning}")
print(f"[CFG] AFK persona version={AFK_PERSONA.version} path={AFK_PERSONA_PATH}")


def chunk_text(text: str, limit: int = DISCORD_MAX_MESSAGE_LEN) -> list[str]:
    text = text or ""
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text

    while len(remaining) > limit:
        # Prefer splitting on paragraph, then newline, then space
        split_at = remaining.rfind("\n\n", 0, limit)
        if split_at == -1:
            split_at = remaining.rfind("\n", 0, limit)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, limit)
        if split_at == -1:
            split_at = limit

        chunk = remaining[:split_at].strip()
        if chunk:
            chunks.append(chunk)

        remaining = remaining[split_at:].strip()

    if remaining:
        chunks.append(remaining)

    return chunks


outbound = OutboundTracker()


async def send_chunked(channel: discord.abc.Messageable, text: str) -> None:
    for part in chunk_text(text, DISCORD_MAX_MESSAGE_LEN):
        await outbound.send(channel, part)


# =========================
# SQLITE
# =========================
REQUIRED_COLUMNS = {
    "state": ["key", "value"],
    "guild_activity": ["guild_id", "guild_name", "msg_count", "last_seen"],
    "snipe_history": ["channel_id", "author_tag", "content", "image", "time", "saved_at"],
    "message_log": ["id", "guild_name", "channel_name", "author_tag", "content", "has_attach", "deleted_at"],
}


def init_db(db_path: str) -> sqlite3.Connection:
    # check_same_thread=False because discord.py event loop + to_thread usage
    conn = sqlite3.connect(db_path, check_same_thread=False)
    cur = conn.cursor()

    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    migrations_dir = os.path.join(REPO_ROOT, "migrations")
    apply_sqlite_migrations(conn, migrations_dir)

    # ---- Schema verification ----
    try:
        for table, required in REQUIRED_COLUMNS.items():
            missing = missing_columns_sync(conn, table, required)
            print(f"[DB] {table} schema OK={not missing} missing={missing}")
        for version, name, applied_at in list_schema_migrations_sync(conn, 1):
            print(f"[DB] latest migration {version}_{name} @ {applied_at}")
    except Exception as e:
        print(f"[DB] Schema verification failed: {e}")

    conn.commit()
    return conn


db_conn = init_db(DB_PATH)
print(f"[DB] Using DB_PATH={DB_PATH}")
print(f"[DB] DB file exists? {os.path.exists(DB_PATH)}")
db_lock = asyncio.Lock()

# =========================
# DISCORD CLIENT
# =========================
intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix=PREFIX, intents=intents, help_command=None)


def user_is_owner(user: discord.abc.User) -> bool:
    uid = int(getattr(user, "id", 0) or 0)
    if bot.user is not None and uid == int(bot.user.id):
        return True
    return uid in OWNER_USER_IDS


async def apply_presence(status: str) -> None:
    await bot.change_presence(status=discord.Status(status))


openai_client = OpenAI(api_key=OPENAI_API_KEY)
tiers = ModelTierController(
    call_model=make_openai_caller(openai_client),
    models=MODEL_TIERS,
    restore_after_seconds=RESTORE_AFTER_SECONDS,
)

media = MediaStore(DOWNLOAD_DIR)
ranker = GuildActivityRanker(
    db_lock=db_lock,
    db_conn=db_conn,
    upsert_guild_activity_sync=upsert_guild_activity_sync,
    self_user_id=lambda: bot.user.id if bot.user else None,
    top_limit=TOP_LIMIT,
)
cache = MessageCache(
    is_admitted=ranker.is_admitted,
    media=media,
    outbound=outbound,
    db_lock=db_lock,
    db_conn=db_conn,
    upsert_snipe_sync=upsert_snipe_sync,
    insert_message_log_sync=insert_message_log_sync,
    log_dir=LOG_DIR,
    ring_limit=CACHE_LIMIT,
)
ranker.on_guild_evicted = cache.purge_guild

afk = AfkService(
    db_lock=db_lock,
    db_conn=db_conn,
    get_json_state_sync=get_json_state_sync,
    set_json_state_sync=set_json_state_sync,
    generate=tiers.generate,
    persona=AFK_PERSONA,
    outbound=outbound,
    prefix=PREFIX,
)
presence = PresenceService(
    db_lock=db_lock,
    db_conn=db_conn,
    get_json_state_sync=get_json_state_sync,
    set_json_state_sync=set_json_state_sync,
    apply_presence=apply_presence,
)
operator = OperatorService(
    db_lock=db_lock,
    db_conn=db_conn,
    fetch_recent_message_logs_sync=fetch_recent_message_logs_sync,
    clear_message_log_sync=clear_message_log_sync,
    cache=cache,
    media=media,
    ranker=ranker,
    tiers=tiers,
    cooldowns=Cooldowns(),
    started_at=STARTED_AT,
)


async def sweep_loop() -> None:
    await sweep_loop_service(media=media)


async def presence_loop() -> None:
    await presence_loop_service(presence=presence)


wire_bot_runtime(
    bot,
    prefix=PREFIX,
    user_is_owner=user_is_owner,
    db_lock=db_lock,
    db_conn=db_conn,
    send_chunked=send_chunked,
    outbound=outbound,
    cache=cache,
    ranker=ranker,
    tiers=tiers,
    media=media,
    afk=afk,
    presence=presence,
    operator=operator,
    fetch_guild_activity_sync=fetch_guild_activity_sync,
    fetch_snipes_sync=fetch_snipes_sync,
    sweep_loop_func=sweep_loop,
    presence_loop_func=presence_loop,
    console_enabled=ENABLE_CONSOLE,
)

try:
    bot.run(DISCORD_TOKEN)
finally:
    session_log.stop()
