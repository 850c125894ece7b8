"""
Fault-slip tables.

Turns in-memory tables of field measurements (dip direction, dip, rake,
sense of movement) into the immutable FaultSet used by the inversion.
"""

import pandas as pd

from .faults import Fault, FaultSet, SenseOfMovement


# Column naming convention for fault-slip tables
DIP_DIRECTION_COL = "dip_direction_deg"
DIP_COL = "dip_deg"
RAKE_COL = "rake_deg"
SENSE_COL = "sense"

REQUIRED_COLUMNS = [DIP_DIRECTION_COL, DIP_COL, RAKE_COL]
SENSES = [s.value for s in SenseOfMovement]


def clean_fault_table(df: pd.DataFrame) -> pd.DataFrame:
    """Standardize a raw fault table.

    Wraps dip directions to [0, 360), clips dips to [0, 90] and rakes to
    [0, 180], fills missing senses with 'UKN' and drops rows without an
    orientation. Unknown sense tags raise ValueError.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing fault table column(s): {', '.join(missing)}")

    df = df.copy()
    for col in REQUIRED_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df = df.dropna(subset=REQUIRED_COLUMNS).reset_index(drop=True)

    df[DIP_DIRECTION_COL] = df[DIP_DIRECTION_COL] % 360
    df[DIP_COL] = df[DIP_COL].clip(0, 90)
    df[RAKE_COL] = df[RAKE_COL].clip(0, 180)

    if SENSE_COL not in df.columns:
        df[SENSE_COL] = SenseOfMovement.UKN.value
    df[SENSE_COL] = df[SENSE_COL].fillna(SenseOfMovement.UKN.value).astype(str).str.strip().str.upper()
    bad = sorted(set(df[SENSE_COL]) - set(SENSES))
    if bad:
        raise ValueError(f"Unknown sense of movement tag(s): {', '.join(bad)}")

    return df


def fault_table_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Count and mean orientation of the faults per sense of movement."""
    return df.groupby(SENSE_COL).agg(
        count=(DIP_COL, "count"),
        dip_mean=(DIP_COL, "mean"),
        rake_mean=(RAKE_COL, "mean"),
    ).round(1)


def faults_from_dataframe(df: pd.DataFrame) -> FaultSet:
    """Build a FaultSet from a (cleaned or raw) fault table, keeping row order."""
    df = clean_fault_table(df)
    faults = [
        Fault.from_angles(row[DIP_DIRECTION_COL], row[DIP_COL], row[RAKE_COL], row[SENSE_COL])
        for _, row in df.iterrows()
    ]
    return FaultSet(faults)
