from app.models.credit_account import CreditAccount
from app.models.credit_ledger import CreditLedgerEntry
from app.models.job import Job, JobState, JobType
from app.models.platform_settings import PlatformSettings

__all__ = [
    "CreditAccount",
    "CreditLedgerEntry",
    "Job",
    "JobState",
    "JobType",
    "PlatformSettings",
]
