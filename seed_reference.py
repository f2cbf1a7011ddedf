#!/usr/bin/env python3
"""
Reference data loader (districts, wards, departments)

Usage:
    python seed_reference.py <wards.csv> [--dry-run] [--create-tables]

CSV columns (header row required, extra columns ignored):
    district,ward_no,latitude,longitude[,secret_key]

Districts missing from the database are created; when the CSV carries no
secret_key a random one is generated and printed once. The default
department list is inserted as well. Rows that already exist are skipped,
so the script can be re-run safely.
"""
import sys
import csv
import argparse
import secrets
from pathlib import Path

# ── Department master ─────────────────────────────────────────────────────────
DEPARTMENT_MASTER = [
    "Public Health / Sanitation Department",
    "Engineering / Roads Department",
    "Street Lighting / Electrical Department",
    "Water Supply Department",
    "Building & Town Planning",
    "Parks & Horticulture Department",
    "Licensing / Trade & Markets Department",
    "Education & Community Services",
    "Fire & Emergency Services",
    "Health Department",
]

REQUIRED_COLUMNS = ("district", "ward_no", "latitude", "longitude")


def _read_csv(path: Path) -> tuple[list[str], list[list[str]]]:
    for enc in ("utf-8-sig", "utf-8", "cp1252"):
        try:
            text = path.read_text(encoding=enc)
            reader = csv.reader(text.splitlines())
            rows = [r for r in reader if any(c.strip() for c in r)]
            if rows:
                return [h.strip().lower() for h in rows[0]], rows[1:]
        except (UnicodeDecodeError, ValueError):
            continue
    raise ValueError(f"Could not decode {path}")


def _parse_float(s: str) -> float | None:
    try:
        return float(s.strip())
    except (ValueError, AttributeError):
        return None


def parse_rows(headers: list[str], rows: list[list[str]]) -> tuple[list[dict], int]:
    """
    Returns (records, skipped). Rows with a blank district/ward or
    unparsable coordinates are skipped.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise ValueError(f"Missing columns: {', '.join(missing)}")
    idx = {h: i for i, h in enumerate(headers)}

    def cell(row, name):
        i = idx.get(name)
        return row[i].strip() if i is not None and i < len(row) else ""

    records, skipped = [], 0
    for row in rows:
        district = cell(row, "district")
        ward_no  = cell(row, "ward_no")
        lat      = _parse_float(cell(row, "latitude"))
        lng      = _parse_float(cell(row, "longitude"))
        if not district or not ward_no or lat is None or lng is None:
            print(f"  [SKIP] unusable row: {row}")
            skipped += 1
            continue
        records.append({
            "district":   district,
            "ward_no":    ward_no,
            "latitude":   lat,
            "longitude":  lng,
            "secret_key": cell(row, "secret_key") or None,
        })
    return records, skipped


def seed(db, records: list[dict], dry_run: bool = False) -> dict:
    """
    Insert whatever is missing. Returns counts per table plus the secrets
    generated for new districts ({district name: key}).
    """
    from models import Department, District, Ward

    counts = {"districts": 0, "wards": 0, "departments": 0, "skipped": 0}
    generated: dict[str, str] = {}

    existing_depts = {d[0] for d in db.query(Department.name).all()}
    for name in DEPARTMENT_MASTER:
        if name not in existing_depts:
            db.add(Department(name=name))
            counts["departments"] += 1

    districts = {d.name: d for d in db.query(District).all()}
    for rec in records:
        district = districts.get(rec["district"])
        if district is None:
            key = rec["secret_key"] or secrets.token_urlsafe(16)
            if not rec["secret_key"]:
                generated[rec["district"]] = key
            district = District(name=rec["district"], secret_key=key)
            db.add(district)
            db.flush()
            districts[district.name] = district
            counts["districts"] += 1

        exists = (
            db.query(Ward)
            .filter(Ward.district_id == district.id, Ward.ward_no == rec["ward_no"])
            .first()
        )
        if exists:
            counts["skipped"] += 1
            continue
        db.add(Ward(
            district_id = district.id,
            ward_no     = rec["ward_no"],
            latitude    = rec["latitude"],
            longitude   = rec["longitude"],
        ))
        db.flush()
        counts["wards"] += 1

    if dry_run:
        db.rollback()
    else:
        db.commit()
    return {**counts, "generated_secrets": generated}


# ── Entry point ───────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Load districts, wards and departments")
    parser.add_argument("csv_file", help="ward CSV (district,ward_no,latitude,longitude[,secret_key])")
    parser.add_argument("--dry-run", action="store_true",
                        help="parse and validate, write nothing")
    parser.add_argument("--create-tables", action="store_true",
                        help="create missing tables before loading")
    args = parser.parse_args(argv)

    path = Path(args.csv_file)
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        sys.exit(1)

    print(f"[1/2] Reading {path}")
    try:
        headers, rows = _read_csv(path)
        records, skipped = parse_rows(headers, rows)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"      wards parsed: {len(records)} / skipped: {skipped}")

    from database import Base, SessionLocal, engine
    if args.create_tables:
        Base.metadata.create_all(engine)

    label = "[DRY-RUN] " if args.dry_run else ""
    print(f"[2/2] {label}Writing reference data...")
    db = SessionLocal()
    try:
        result = seed(db, records, args.dry_run)
    finally:
        db.close()

    print(f"      districts: {result['districts']} / wards: {result['wards']} / "
          f"departments: {result['departments']} / already present: {result['skipped']}")
    for name, key in result["generated_secrets"].items():
        print(f"      admin secret for {name}: {key}")
    if args.dry_run:
        print("      --dry-run: nothing was written")


if __name__ == "__main__":
    main()
