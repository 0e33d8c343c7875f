"""Policy export to xlsx/csv, plus listing and deleting exported files."""

import csv
import io
from collections import Counter
from datetime import datetime, timezone
from typing import Any

import openpyxl
from openpyxl.utils import get_column_letter

from stshield.core.exceptions import NotFoundError, ValidationError
from stshield.core.logging import get_logger
from stshield.models.policy import PolicyRecord
from stshield.policy_store.base import PolicyStore
from stshield.services.pricing import format_rupees
from stshield.storage.base import StorageBackend

log = get_logger(__name__)

EXPORT_PREFIX = "exports"
FORMATS = ("xlsx", "csv")
CONTENT_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}

# (column header, user_data key)
USER_COLUMNS = [
    ("Customer Name", "name"),
    ("Email", "email"),
    ("Phone", "phone"),
    ("Date of Birth", "dateOfBirth"),
    ("Aadhar Number", "aadharNumber"),
    ("Plan Type", "planType"),
    ("Amount", "amount"),
    ("Address", "address"),
    ("City", "city"),
    ("Pincode", "pincode"),
    ("Nominee Name", "nomineeFullName"),
    ("Nominee Relationship", "nomineeRelationship"),
    ("Parent Name", "parentName"),
    ("Parent Phone", "parentPhone"),
    ("College Name", "collegeName"),
    ("Course", "course"),
    ("Year of Study", "yearOfStudy"),
]


def _as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _premium_rupees(record: PolicyRecord) -> float:
    if record.amount_paise is not None:
        return record.amount_paise / 100
    try:
        return float(record.user_data.get("amount") or 0)
    except (TypeError, ValueError):
        return 0.0


def transform_policies(records: list[PolicyRecord], include_user_data: bool = True) -> list[dict[str, Any]]:
    rows = []
    for r in records:
        row: dict[str, Any] = {
            "Policy ID": r.policy_id,
            "Order ID": r.order_id,
            "Payment ID": r.payment_id,
            "Created Date": _as_utc(r.timestamp).strftime("%Y-%m-%d %H:%M:%S"),
            "Policy Status": "Active",
        }
        if include_user_data:
            user_data = r.user_data or {}
            for header, key in USER_COLUMNS:
                value = user_data.get(key)
                if key == "amount" and r.amount_paise is not None:
                    value = format_rupees(r.amount_paise)
                row[header] = value if value not in (None, "") else "N/A"
        rows.append(row)
    return rows


def summarize(records: list[PolicyRecord], now: datetime | None = None) -> list[dict[str, Any]]:
    """Metric/Value rows: totals, plan distribution, top 5 cities."""
    now = now or datetime.now(timezone.utc)
    total = len(records)
    total_amount = sum(_premium_rupees(r) for r in records)
    plans = Counter((r.user_data or {}).get("planType") or "Unknown" for r in records)
    cities = Counter((r.user_data or {}).get("city") or "Unknown" for r in records)
    average = round(total_amount / total) if total else 0
    out: list[dict[str, Any]] = [
        {"Metric": "Total Policies", "Value": total},
        {"Metric": "Total Premium Amount", "Value": f"₹{total_amount:,.0f}"},
        {"Metric": "Average Premium", "Value": f"₹{average:,}"},
        {"Metric": "Export Date", "Value": now.strftime("%Y-%m-%d %H:%M:%S")},
        {"Metric": "", "Value": ""},
        {"Metric": "Plan Distribution", "Value": ""},
    ]
    for plan, count in plans.items():
        out.append({"Metric": f"{plan} Plans", "Value": f"{count} ({round(count / total * 100)}%)"})
    out.append({"Metric": "", "Value": ""})
    out.append({"Metric": "Top Cities", "Value": ""})
    for city, count in cities.most_common(5):
        out.append({"Metric": city, "Value": f"{count} policies"})
    return out


def _write_sheet(ws, rows: list[dict[str, Any]]) -> None:
    if not rows:
        return
    headers = list(rows[0].keys())
    ws.append(headers)
    for row in rows:
        ws.append([row.get(h) for h in headers])
    for i, h in enumerate(headers, start=1):
        width = max(len(str(h)), *(len(str(row.get(h, ""))) for row in rows))
        ws.column_dimensions[get_column_letter(i)].width = min(width + 2, 60)


def build_xlsx(policy_rows: list[dict[str, Any]], summary_rows: list[dict[str, Any]]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Policies"
    _write_sheet(ws, policy_rows)
    _write_sheet(wb.create_sheet("Summary"), summary_rows)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_csv(policy_rows: list[dict[str, Any]]) -> bytes:
    buf = io.StringIO()
    if policy_rows:
        writer = csv.DictWriter(buf, fieldnames=list(policy_rows[0].keys()))
        writer.writeheader()
        writer.writerows(policy_rows)
    return buf.getvalue().encode("utf-8")


def _filename(now: datetime, fmt: str) -> str:
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    return f"policies_export_{stamp}.{fmt}"


async def export_policies(
    store: PolicyStore,
    storage: StorageBackend,
    fmt: str = "xlsx",
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    include_user_data: bool = True,
) -> dict[str, Any]:
    if fmt not in FORMATS:
        raise ValidationError(f"Unsupported export format: {fmt}")
    start, end = _as_utc(start_date), _as_utc(end_date)
    if start and end and start > end:
        raise ValidationError("start_date must be before end_date")
    records = await store.list_policies(start, end)
    if not records:
        raise NotFoundError("No policies found for export")

    now = datetime.now(timezone.utc)
    policy_rows = transform_policies(records, include_user_data)
    if fmt == "csv":
        content = build_csv(policy_rows)
    else:
        content = build_xlsx(policy_rows, summarize(records, now))
    filename = _filename(now, fmt)
    path = await storage.put(f"{EXPORT_PREFIX}/{filename}", content, content_type=CONTENT_TYPES[fmt])
    log.info("policies_exported", filename=filename, total=len(records), format=fmt)
    return {
        "success": True,
        "filename": filename,
        "filePath": path,
        "totalRecords": len(records),
        "exportTime": now.isoformat(),
    }


async def list_exported_files(storage: StorageBackend) -> list[dict[str, Any]]:
    files = await storage.list_files(EXPORT_PREFIX)
    oldest = datetime.min.replace(tzinfo=timezone.utc)
    files.sort(key=lambda f: _as_utc(f.created) or oldest, reverse=True)
    return [
        {
            "filename": f.filename,
            "filePath": f.path,
            "size": f.size,
            "created": f.created.isoformat() if f.created else None,
            "modified": f.modified.isoformat() if f.modified else None,
        }
        for f in files
    ]


async def delete_exported_file(storage: StorageBackend, filename: str) -> dict[str, Any]:
    if not filename or "/" in filename or "\\" in filename or filename.startswith("."):
        raise ValidationError("Invalid filename")
    try:
        await storage.delete(f"{EXPORT_PREFIX}/{filename}")
    except FileNotFoundError as e:
        raise NotFoundError("Exported file not found") from e
    log.info("export_deleted", filename=filename)
    return {"success": True, "filename": filename}
