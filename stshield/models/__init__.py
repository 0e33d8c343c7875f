from stshield.models.failed_job import FailedJob
from stshield.models.policy import PolicyDocument, PolicyRecord

__all__ = [
    "FailedJob",
    "PolicyDocument",
    "PolicyRecord",
]
