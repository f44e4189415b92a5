#!/usr/bin/env python3
"""Dataset generation script for import performance runs.

Generates synthetic employee, asset or SIM card files in the layout the
import engine expects:
- Row 1: Header row (spellings as found in the hand-authored spreadsheets)
- Row 2+: Data rows

Reference columns draw from small name pools and deliberately repeat names with
different case and stray whitespace, so a run exercises reference
materialization the way real files do. ``--dirty`` additionally blanks
required values and injects sentinel strings for a share of the rows.

Output is CSV (UTF-8 with BOM, as spreadsheet exports produce) or .xlsx,
chosen from the file suffix.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

DEPARTMENTS = ["Engineering", "engineering", "Finance", " Operations ", "Human Resources", "HSE"]
SUB_DEPARTMENTS = ["Night Shift", "Day Shift", "Field", "Workshop"]
POSITIONS = ["Driver", "Technician", "Supervisor", "Clerk", "Engineer"]
NATIONALITIES = ["Saudi", "Indian", "Pakistani", "Filipino", "Egyptian"]
PROJECTS = ["Riyadh Metro", "NEOM", "Jeddah Tower"]
ITEM_CATEGORIES = {"Laptop": ["ThinkPad T14", "Latitude 5440"], "Phone": ["iPhone 15", "Galaxy S24"]}
SIM_PROVIDERS = ["STC", "Mobily", "Zain"]
SIM_PLANS = ["Data 50GB", "Voice Unlimited", "Business Plus"]


def generate_employees(rows: int, rng: np.random.Generator) -> pd.DataFrame:
    joining = pd.Timestamp("2015-01-01") + pd.to_timedelta(rng.integers(0, 3650, rows), unit="D")
    return pd.DataFrame({
        "Employee Code": [f"E{i:06d}" for i in range(1, rows + 1)],
        "Full Name": [f"Person{i} Example" for i in range(1, rows + 1)],
        "Email": [f"person{i}@example.com" for i in range(1, rows + 1)],
        "Mobile": rng.integers(966500000000, 966599999999, rows).astype(str),
        "Joining Date": joining.strftime("%Y-%m-%d"),
        "Department": rng.choice(DEPARTMENTS, rows),
        "Sub Department": rng.choice(SUB_DEPARTMENTS, rows),
        "Job Title": rng.choice(POSITIONS, rows),
        "Nationality": rng.choice(NATIONALITIES, rows),
        "Project": rng.choice(PROJECTS, rows),
    })


def generate_assets(rows: int, rng: np.random.Generator) -> pd.DataFrame:
    categories = rng.choice(list(ITEM_CATEGORIES), rows)
    items = [ITEM_CATEGORIES[c][rng.integers(0, len(ITEM_CATEGORIES[c]))] for c in categories]
    return pd.DataFrame({
        "Asset Tag": [f"AT-{i:07d}" for i in range(1, rows + 1)],
        "Asset Name": [f"{item} #{i}" for i, item in enumerate(items, start=1)],
        "Item Category": categories,
        "Item": items,
        "Serial No": rng.integers(10**11, 10**12, rows).astype(str),
        "Assigned To": [f"E{n:06d}" for n in rng.integers(1, max(rows, 2), rows)],
    })


def generate_sim_cards(rows: int, rng: np.random.Generator) -> pd.DataFrame:
    return pd.DataFrame({
        "SIM Account No": rng.integers(10**8, 10**9, rows).astype(str),
        "SIM Service No": [f"05{n:08d}" for n in range(rows)],
        "SIM Provider": rng.choice(SIM_PROVIDERS, rows),
        "SIM Card Plan": rng.choice(SIM_PLANS, rows),
        "SIM Status": rng.choice(["Active", "active", "Suspended"], rows),
        "SIM Serial No": [f"8966{n:015d}" for n in range(rows)],
    })


GENERATORS = {
    "employees": generate_employees,
    "assets": generate_assets,
    "sim_cards": generate_sim_cards,
}


def dirty(df: pd.DataFrame, share: float, rng: np.random.Generator) -> pd.DataFrame:
    """Blank the first column and sprinkle sentinel values over ``share`` of the rows."""
    df = df.copy()
    picked = rng.random(len(df)) < share
    df.loc[picked, df.columns[0]] = ""
    sentinel_rows = rng.random(len(df)) < share
    df.loc[sentinel_rows, df.columns[-1]] = rng.choice(["N/A", "-", "n/a"], int(sentinel_rows.sum()))
    return df


def write_dataset(df: pd.DataFrame, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix.lower() == ".xlsx":
        df.to_excel(output_path, index=False, engine="openpyxl")
    else:
        df.to_csv(output_path, index=False, encoding="utf-8-sig")


def main() -> int:
    """Main CLI interface for dataset generation."""
    parser = argparse.ArgumentParser(
        description="Generate synthetic import files for performance testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 50k employees as CSV
  %(prog)s employees data/employees.csv

  # 20k assets as a workbook, 5%% of rows broken
  %(prog)s assets data/assets.xlsx --rows 20000 --dirty 0.05
        """,
    )
    parser.add_argument("entity", choices=sorted(GENERATORS), help="Entity type to generate")
    parser.add_argument("output", type=Path, help="Output file path (.csv or .xlsx)")
    parser.add_argument("--rows", type=int, default=50_000, help="Number of data rows (default: 50000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--dirty", type=float, default=0.0,
                        help="Share of rows with blanked keys and sentinel values (default: 0)")

    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0.0 <= args.dirty < 1.0:
        print("Error: --dirty must be in [0, 1)", file=sys.stderr)
        return 1
    if args.output.suffix.lower() not in (".csv", ".xlsx"):
        print("Error: output must end in .csv or .xlsx", file=sys.stderr)
        return 1

    rng = np.random.default_rng(args.seed)
    df = GENERATORS[args.entity](args.rows, rng)
    if args.dirty:
        df = dirty(df, args.dirty, rng)

    try:
        write_dataset(df, args.output)
    except OSError as e:
        print(f"Error writing dataset: {e}", file=sys.stderr)
        return 1

    print(f"Created {args.entity} dataset: {args.output}")
    print(f"  Rows: {len(df):,}")
    print(f"  Columns: {len(df.columns)} ({', '.join(df.columns)})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
