import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./coop_ledger.db")
    MIGRATION_DB_URI = data.get("MIGRATION_DB_URI", "sqlite:///./coop_ledger.db")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")

    # Interest accrual (monthly rate in percent, compounded daily over 30-day months)
    CREDIT_INTEREST_MONTHLY_RATE = str(data.get("CREDIT_INTEREST_MONTHLY_RATE", "0.00"))
    CREDIT_INTEREST_GRACE_PERIOD_DAYS = int(data.get("CREDIT_INTEREST_GRACE_PERIOD_DAYS", 30))
    CREDIT_INTEREST_AUTO_ACCRUAL = bool(data.get("CREDIT_INTEREST_AUTO_ACCRUAL", False))

    # Installment schedules created alongside credit purchases
    DEFAULT_INSTALLMENT_INTERVAL_DAYS = int(data.get("DEFAULT_INSTALLMENT_INTERVAL_DAYS", 30))

    # Late fees on overdue installments: max(fixed amount, installment * percentage / 100)
    LATE_FEES_ENABLED = bool(data.get("LATE_FEES_ENABLED", False))
    LATE_FEE_AMOUNT = str(data.get("LATE_FEE_AMOUNT", "50.00"))
    LATE_FEE_PERCENTAGE = str(data.get("LATE_FEE_PERCENTAGE", "2.00"))

    # Accrual job (overdue schedules, late fees, product penalties, optional interest)
    ACCRUAL_ENABLED = bool(data.get("ACCRUAL_ENABLED", True))
    ACCRUAL_INTERVAL_SECONDS = data.get("ACCRUAL_INTERVAL_SECONDS", 86400)  # Daily

    # Balance reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily
