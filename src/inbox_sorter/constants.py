"""Constants for Inbox Sorter."""

from pathlib import Path

# --- Data paths ---
DATA_DIR = Path.home() / ".inbox-sorter"
DATA_DIR_ENV = "INBOX_SORTER_DATA_DIR"
CACHE_ENABLED_ENV = "INBOX_SORTER_CACHE"
CACHE_SUBDIR = Path("cache") / "folder_emails"
DOMAIN_RULES_FILENAME = "domain_rules.yml"
BUNDLED_DOMAIN_RULES_PATH = Path(__file__).parent / DOMAIN_RULES_FILENAME

# --- Mailbox ---
INBOX = "INBOX"
ENVELOPE_BATCH_SIZE = 800  # ids per envelope fetch
HEADER_BATCH_SIZE = 100  # ids per header fetch when streaming messages
STATUS_FIELDS = ("MESSAGES", "UIDNEXT", "UIDVALIDITY")
DELETED_FLAG = "\\Deleted"
JUNK_ATTRIBUTE = "\\Junk"
SENT_ATTRIBUTE = "\\Sent"
TRANSIENT_RESPONSE_CODES = ("[UNAVAILABLE]", "[INUSE]", "[LIMIT]")
RETRY_ATTEMPTS = 5

# --- Defaults ---
DEFAULT_LIST_FOLDER = "Lists"
DEFAULT_JUNK_FOLDER = "Junk"
DEFAULT_QUARANTINE_FOLDER = "Quarantine"
DEFAULT_SENT_FOLDER = "Sent"
SENT_FOLDER_NAMES = ["Sent Items", "Sent", "[Gmail]/Sent Mail", "Sent Mail"]
DEFAULT_HOLD_DAYS = 7
DEFAULT_LIST_SINCE_MONTHS = 12
DEFAULT_SENT_SINCE_MONTHS = 24
DEFAULT_FILING_SINCE_MONTHS = 24

# --- Message headers ---
AUTHENTICATION_RESULTS_HEADER = "Authentication-Results"
SPOOF_INDICATOR_HEADERS = ["X-Antiabuse"]
DKIM_PASS_TOKEN = "dkim=pass"

# --- Folder categorization thresholds ---
MIN_FOLDER_MESSAGES = 5
HEADER_SAMPLE_SIZE = 20
BULK_HEADER_RATIO = 0.3
FEW_DOMAINS_LIMIT = 2
FEW_DOMAINS_MIN_MESSAGES = 50
PERSONAL_SENDER_RATIO = 0.3
HIGH_VOLUME_MESSAGES = 100

# --- Sent items analysis ---
SENT_SAMPLE_SIZE = 200  # most recent sent messages sampled
FREQUENT_CORRESPONDENTS_LIMIT = 20

# --- Folder categorization patterns (matched against the lower-cased name) ---
SYSTEM_FOLDER_PATTERNS = [
    r"^sent",
    r"^drafts?$",
    r"^outbox$",
    r"^trash$",
    r"^deleted",
    r"^junk",
    r"^calendar",
    r"^contacts$",
    r"^notes$",
    r"^notes_\d+$",
    r"^tasks$",
    r"^templates$",
    r"^archive$",
    r"^conversation",
    r"^journal$",
    r"^apple mail to do$",
    r"^_unsubscribed$",
    r"^old$",
    r"^misc$",
]

LIST_FOLDER_PATTERNS = [
    # social platforms
    r"^facebook$",
    r"^twitter$",
    r"^linkedin$",
    r"^instagram$",
    # e-commerce
    r"^amazon$",
    r"^ebay$",
    r"^paypal$",
    # developer platforms
    r"^github$",
    r"^stackoverflow$",
    r"^gitlab$",
    # content categories
    r"^shopping",
    r"^entertainment",
    r"^movies",
    r"^tv",
    r"^streaming",
    r"^lists?",
    r"^newsletters?",
    r"^notifications?",
    r"^alerts?",
    r"^marketing",
    r"^promotions?",
    r"^ads?\b",
    r"^deals?",
    r"^updates?",
]

WHITELIST_FOLDER_PATTERNS = [
    r"^family",
    r"^friends",
    r"^personal",
    r"^private",
    r"^work",
    r"^business",
    r"^clients",
    r"^customers",
    r"^important",
    r"^urgent",
    r"^priority",
    r"^critical",
    r"^projects",
    r"^meetings",
    r"^appointments",
]

# Matched line by line against the raw header block, case-insensitively.
BULK_HEADER_PATTERNS = [
    r"^List-Unsubscribe:",
    r"^Precedence:\s*bulk",
    r"^X-Mailer:.*(mailing|newsletter|campaign)",
    r"^X-Campaign:",
    r"^X-Mailing-List:",
    r"^Feedback-ID:",
    r"^X-Auto-Response-Suppress:",
]

PERSONAL_LOCAL_PART_PATTERN = r"^[a-z]+\.[a-z]+$"
