# -*- coding: utf-8 -*-
"""
Global constants and project settings.
"""
import os

# === Paths ===
INFRA_DIR = os.path.dirname(os.path.abspath(__file__))   # .../project-root/infra
PROJECT_ROOT = os.path.dirname(INFRA_DIR)                # .../project-root
PROMPTS_DIR = os.path.join(PROJECT_ROOT, "core", "prompts")   # shipped as package data of core

DATA_DIR = os.environ.get(
    "HAIR_ADVISOR_HOME",
    os.path.join(os.path.expanduser("~"), ".hair_advisor"),
)
STORE_PATH = os.path.join(DATA_DIR, "local_store.json")

API_KEY_PATH = os.path.join(DATA_DIR, "api_key.txt")
FACE_ANALYSIS_PROMPT_PATH = os.path.join(PROMPTS_DIR, "face_analysis.prompt.md")
ADVICE_PROMPT_PATH = os.path.join(PROMPTS_DIR, "advice.prompt.md")

# === OpenAI API ===
BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4.1-mini"

# === Network timeouts ===
TIMEOUT = (30, 180)  # (connect, read)

# === Language handling ===
DEFAULT_LANGUAGE = "en"
DETECTION_CONFIDENCE_THRESHOLD = 0.5

# === AI operations ===
MAX_RETRY_ATTEMPTS = 3
SKIP_OFFER_DELAY_MS = 3000
SLOW_OPERATION_WARNING_MS = 8000

# === History ===
HISTORY_MAX_RECORDS = 50

# === Window ===
WINDOW_SIZE = "980x720"
WINDOW_TITLE = "AI Hairstyle Advisor"

# === Window fonts ===
LOG_FONT = ("Consolas", 10)

PAD_X = 10
PAD_Y = 8

# === Journal ===
LOGS_DIR = os.path.join(DATA_DIR, "logs")
JOURNAL_FILE = os.path.join(LOGS_DIR, "ai_journal.jsonl")
JOURNAL_MAX_RECORDS = 1000
JOURNAL_WINDOW_SIZE = "900x560"
HISTORY_WINDOW_SIZE = "900x560"
