import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from stshield.core.config import get_settings
from stshield.models.failed_job import FailedJob
from stshield.models.policy import PolicyDocument

DOCUMENT_MODELS = [
    PolicyDocument,
    FailedJob,
]

_initialized = False


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db(force: bool = False) -> None:
    global _initialized
    if _initialized and not force:
        return
    settings = get_settings()
    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
    kwargs = {}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    _initialized = True
