from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from stshield.core.security import require_admin_key
from stshield.policy_store.base import PolicyStore, get_policy_store
from stshield.services import exports as exports_service
from stshield.storage.base import StorageBackend, get_storage

router = APIRouter(dependencies=[Depends(require_admin_key)])


class ExportRequest(BaseModel):
    format: Literal["xlsx", "csv"] = "xlsx"
    start_date: datetime | None = None
    end_date: datetime | None = None
    include_user_data: bool = True


@router.post("")
async def create_export(
    body: ExportRequest,
    store: PolicyStore = Depends(get_policy_store),
    storage: StorageBackend = Depends(get_storage),
):
    """Export policies (optionally within a date range) to xlsx or csv."""
    return await exports_service.export_policies(
        store,
        storage,
        fmt=body.format,
        start_date=body.start_date,
        end_date=body.end_date,
        include_user_data=body.include_user_data,
    )


@router.get("")
async def list_exports(storage: StorageBackend = Depends(get_storage)):
    """Exported files, newest first."""
    files = await exports_service.list_exported_files(storage)
    return {"files": files, "count": len(files)}


@router.delete("/{filename}")
async def delete_export(filename: str, storage: StorageBackend = Depends(get_storage)):
    return await exports_service.delete_exported_file(storage, filename)
