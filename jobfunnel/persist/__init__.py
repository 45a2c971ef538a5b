"""
Persistence: candidate profiles, the job and fit-score stores, and the
billing gate consulted before a scan.
"""

from .profile import CandidateProfile, build_user_context  # noqa: F401
from .stores import (  # noqa: F401
    BillingGate,
    FitScoreStore,
    InMemoryProfileStore,
    JobInput,
    JobStore,
    LocalBilling,
    LocalFitScoreStore,
    LocalJobStore,
    ProfileStore,
    UnlimitedBilling,
)
