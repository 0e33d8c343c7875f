import io
from datetime import datetime, timedelta, timezone

import openpyxl
import pytest

from conftest import ADMIN_KEY
from stshield.core.exceptions import NotFoundError, ValidationError
from stshield.models.policy import PolicyRecord
from stshield.services import exports

pytestmark = pytest.mark.asyncio

T0 = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
HEADERS = {"X-Admin-Key": ADMIN_KEY}


async def _seed(store, n: int = 3) -> None:
    cities = ["Pune", "Pune", "Delhi", "Mumbai"]
    for i in range(n):
        plan = "student-shield" if i % 2 == 0 else "student-shield-plus"
        await store.put_if_absent(PolicyRecord(
            policy_id=f"SSST{i:012d}",
            order_id=f"order_{i}",
            payment_id=f"pay_{i}",
            user_data={"name": f"Student {i}", "planType": plan, "city": cities[i % 4]},
            amount_paise=99900 if i % 2 == 0 else 199900,
            timestamp=T0 + timedelta(days=i),
        ))


async def test_transform_fills_missing_user_fields():
    rec = PolicyRecord(policy_id="SSST1", order_id="o", payment_id="p", user_data={"name": "A"}, amount_paise=99900, timestamp=T0)
    [row] = exports.transform_policies([rec])
    assert row["Policy ID"] == "SSST1"
    assert row["Policy Status"] == "Active"
    assert row["Customer Name"] == "A"
    assert row["Email"] == "N/A"
    assert row["Amount"] == "999"
    [slim] = exports.transform_policies([rec], include_user_data=False)
    assert "Customer Name" not in slim


async def test_summary_counts(policy_store):
    await _seed(policy_store, 4)
    rows = exports.summarize(await policy_store.list_policies(), now=T0)
    metrics = {r["Metric"]: r["Value"] for r in rows}
    assert metrics["Total Policies"] == 4
    assert metrics["Total Premium Amount"] == "₹5,996"
    assert metrics["Average Premium"] == "₹1,499"
    assert metrics["student-shield Plans"] == "2 (50%)"
    assert metrics["Pune"] == "2 policies"


async def test_export_xlsx_writes_policies_and_summary(policy_store, storage):
    await _seed(policy_store)
    result = await exports.export_policies(policy_store, storage, fmt="xlsx")
    assert result["success"] is True
    assert result["totalRecords"] == 3
    assert result["filename"].startswith("policies_export_") and result["filename"].endswith(".xlsx")

    content = await storage.get(f"exports/{result['filename']}")
    wb = openpyxl.load_workbook(io.BytesIO(content))
    assert wb.sheetnames == ["Policies", "Summary"]
    rows = list(wb["Policies"].iter_rows(values_only=True))
    assert rows[0][:3] == ("Policy ID", "Order ID", "Payment ID")
    assert [r[0] for r in rows[1:]] == [f"SSST{i:012d}" for i in range(3)]


async def test_export_csv_with_date_range(policy_store, storage):
    await _seed(policy_store, 4)
    result = await exports.export_policies(
        policy_store, storage, fmt="csv", start_date=T0 + timedelta(days=1), end_date=T0 + timedelta(days=2),
    )
    assert result["totalRecords"] == 2
    text = (await storage.get(f"exports/{result['filename']}")).decode()
    lines = text.strip().splitlines()
    assert lines[0].startswith("Policy ID,Order ID,Payment ID")
    assert len(lines) == 3


async def test_export_without_policies(policy_store, storage):
    with pytest.raises(NotFoundError):
        await exports.export_policies(policy_store, storage)


async def test_export_rejects_reversed_range(policy_store, storage):
    await _seed(policy_store)
    with pytest.raises(ValidationError):
        await exports.export_policies(policy_store, storage, start_date=T0 + timedelta(days=2), end_date=T0)


async def test_list_and_delete_exported_files(policy_store, storage):
    await _seed(policy_store)
    a = await exports.export_policies(policy_store, storage, fmt="csv")
    files = await exports.list_exported_files(storage)
    assert [f["filename"] for f in files] == [a["filename"]]
    assert files[0]["size"] > 0

    assert await exports.delete_exported_file(storage, a["filename"]) == {"success": True, "filename": a["filename"]}
    assert await exports.list_exported_files(storage) == []
    with pytest.raises(NotFoundError):
        await exports.delete_exported_file(storage, a["filename"])


@pytest.mark.parametrize("name", ["../secrets.env", "a/b.xlsx", ".hidden", ""])
async def test_delete_rejects_paths(storage, name):
    with pytest.raises(ValidationError):
        await exports.delete_exported_file(storage, name)


async def test_export_api_round_trip(client, policy_store):
    await _seed(policy_store)
    r = await client.post("/api/admin/exports", json={"format": "xlsx"}, headers=HEADERS)
    assert r.status_code == 200, r.text
    filename = r.json()["filename"]

    r = await client.get("/api/admin/exports", headers=HEADERS)
    assert r.json()["count"] == 1
    assert r.json()["files"][0]["filename"] == filename

    r = await client.delete(f"/api/admin/exports/{filename}", headers=HEADERS)
    assert r.status_code == 200
    r = await client.delete(f"/api/admin/exports/{filename}", headers=HEADERS)
    assert r.status_code == 404


async def test_export_api_empty_store_is_404(client):
    r = await client.post("/api/admin/exports", json={}, headers=HEADERS)
    assert r.status_code == 404
    assert r.json()["message"] == "No policies found for export"


async def test_export_api_requires_admin_key(client, monkeypatch):
    r = await client.get("/api/admin/exports")
    assert r.status_code == 401
    r = await client.get("/api/admin/exports", headers={"X-Admin-Key": "wrong"})
    assert r.status_code == 401

    from stshield.core.config import get_settings
    monkeypatch.setattr(get_settings(), "admin_api_key", "")
    r = await client.get("/api/admin/exports", headers=HEADERS)
    assert r.status_code == 503
