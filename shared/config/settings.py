import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

# Default shown in the admin UI. The ledger never reads it directly:
# callers pass the rate they want applied on every settlement.
DEFAULT_COMMISSION_RATE = Decimal(os.getenv("DEFAULT_COMMISSION_RATE", "10"))

# Email (Resend). With no API key, emails are logged instead of sent.
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
FROM_EMAIL = os.getenv("FROM_EMAIL", "onboarding@resend.dev")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "Charity Marketplace")
EMAIL_TIMEOUT_SECONDS = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))
EMAIL_QUEUE_MAXSIZE = int(os.getenv("EMAIL_QUEUE_MAXSIZE", "1000"))

SITE_URL = os.getenv("SITE_URL", "http://localhost:5173")
