import os
from dotenv import load_dotenv
from pathlib import Path

# Load environment variables from .env file with explicit path
load_dotenv(dotenv_path=Path(__file__).parent.parent / '.env')

BASE_DIR = Path(__file__).parent.parent

# OpenAI Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o-mini")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
WHISPER_MODEL = os.getenv("WHISPER_MODEL", "whisper-1")
STT_LANGUAGE = os.getenv("STT_LANGUAGE", "es")
# Set to false to answer only with the scripted rules (no LLM calls)
GENERATOR_ENABLED = os.getenv("GENERATOR_ENABLED", "true").lower() == "true"

# Meta Cloud API (WhatsApp) Configuration
META_VERIFY_TOKEN = os.getenv("META_VERIFY_TOKEN")
WHATSAPP_TOKEN = os.getenv("WHATSAPP_TOKEN")
PHONE_NUMBER_ID = os.getenv("PHONE_NUMBER_ID")
META_APP_SECRET = os.getenv("META_APP_SECRET")  # optional, enables signature checks
GRAPH_API_URL = os.getenv("GRAPH_API_URL", "https://graph.facebook.com/v19.0")
WHATSAPP_QUOTE_REPLY = os.getenv("WHATSAPP_QUOTE_REPLY", "true").lower() != "false"

# Google Sheets Configuration
SPREADSHEET_ID = os.getenv("SPREADSHEET_ID")
SHEET_TAB = os.getenv("SHEET_TAB", "Socios")
LOGS_TAB = os.getenv("LOGS_TAB", "Logs")
LEADS_TAB = os.getenv("LEADS_TAB", "Leads")
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_MS", "120000")) / 1000
GOOGLE_SERVICE_ACCOUNT_FILE = os.getenv(
    "GOOGLE_SERVICE_ACCOUNT_FILE", str(BASE_DIR / "service-account.json")
)

# Organization / persona variables
ORG_NAME = os.getenv("ORG_NAME", "ACIACAM")
SEDE_DIRECCION = os.getenv("SEDE_DIRECCION")
CUOTA_MENSUAL = os.getenv("CUOTA_MENSUAL", "80000")
DEFAULT_TONE = os.getenv("DEFAULT_TONE", "amable")  # amable | formal | urgente

# RAG Configuration
KNOWLEDGE_DIR = os.getenv("KNOWLEDGE_DIR", str(BASE_DIR / "knowledge"))
INDEX_FILE = os.getenv("INDEX_FILE", str(BASE_DIR / "knowledge.index.json"))
RAG_TOP_K = int(os.getenv("RAG_TOP_K", "4"))
BASE_PROMPT_PATH = os.getenv("BASE_PROMPT_PATH", str(BASE_DIR / "prompts" / "base.md"))

# Runtime
DEDUP_TTL_SECONDS = int(os.getenv("DEDUP_TTL_SECONDS", "300"))  # 5 minutes
FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg")
PROFILE_DB_PATH = os.getenv("PROFILE_DB_PATH", str(BASE_DIR / "profiles.db"))
PORT = int(os.getenv("PORT", "8080"))
