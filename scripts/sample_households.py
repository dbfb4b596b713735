"""
Sample Household Panel
======================
Creates a smaller copy of the raw panel restricted to the most active
households, for quick local runs of the pipeline.

Uses chunked reading to handle large files without running out of memory.

Usage:
    python scripts/sample_households.py --top-households 500
    python scripts/sample_households.py --top-households 100 --output data/panel_top100.csv
"""

import argparse
import time
from collections import Counter
from pathlib import Path

import pandas as pd


def count_household_activity(input_path: Path, chunk_size: int = 500_000) -> Counter:
    """
    Count purchase rows per household using chunked reading.

    Parameters
    ----------
    input_path : Path
        Path to the raw panel CSV
    chunk_size : int
        Rows to read per chunk

    Returns
    -------
    Counter
        Household ID -> purchase row count
    """
    print(f"Counting household activity from {input_path}...")
    print(f"  Using chunk size: {chunk_size:,}")

    household_counts = Counter()
    total_rows = 0

    for chunk in pd.read_csv(input_path, usecols=['household_id'], dtype=str, chunksize=chunk_size):
        total_rows += len(chunk)
        household_counts.update(chunk['household_id'].dropna().values)

    print(f"  Total: {total_rows:,} rows, {len(household_counts):,} unique households")
    return household_counts


def get_top_households(household_counts: Counter, top_n: int) -> set:
    """
    Get the top N most active households (ties in first-seen order).
    """
    top_households = set(hh for hh, _ in household_counts.most_common(top_n))

    if top_households:
        top_counts = [household_counts[h] for h in top_households]
        print(f"\nTop {len(top_households):,} households:")
        print(f"  Min rows: {min(top_counts):,}")
        print(f"  Max rows: {max(top_counts):,}")

    return top_households


def extract_household_rows(
    input_path: Path,
    output_path: Path,
    target_households: set,
    chunk_size: int = 500_000
) -> int:
    """
    Write every panel row of the target households to output_path.

    The header is always written, so an empty selection still yields a
    readable panel.

    Returns
    -------
    int
        Number of rows extracted
    """
    print(f"\nExtracting rows for {len(target_households):,} households...")

    total_extracted = 0
    first_chunk = True

    for chunk in pd.read_csv(input_path, dtype=str, chunksize=chunk_size):
        filtered = chunk[chunk['household_id'].isin(target_households)]

        if first_chunk or len(filtered) > 0:
            filtered.to_csv(
                output_path,
                mode='w' if first_chunk else 'a',
                header=first_chunk,
                index=False
            )
            first_chunk = False
            total_extracted += len(filtered)

    print(f"  Total extracted: {total_extracted:,} rows")
    return total_extracted


def main():
    parser = argparse.ArgumentParser(description='Sample the panel down to its most active households')
    parser.add_argument(
        '--top-households',
        type=int,
        default=500,
        help='Number of most active households to keep (default: 500)'
    )
    parser.add_argument('--input', type=str, default=None, help='Raw panel CSV path')
    parser.add_argument('--output', type=str, default=None, help='Output sampled CSV path')
    parser.add_argument(
        '--chunk-size',
        type=int,
        default=500_000,
        help='Chunk size for reading (default: 500000)'
    )
    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    input_path = Path(args.input) if args.input else project_root / 'data' / 'dataset_dprep.csv'
    if args.output:
        output_path = Path(args.output)
    else:
        output_path = project_root / 'data' / f'dataset_dprep_top{args.top_households}.csv'

    print("=" * 60)
    print("Household Sampling Script")
    print("=" * 60)
    print(f"\nInput: {input_path}")
    print(f"Output: {output_path}")

    start_time = time.time()

    household_counts = count_household_activity(input_path, args.chunk_size)
    top_households = get_top_households(household_counts, args.top_households)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    total_extracted = extract_household_rows(input_path, output_path, top_households, args.chunk_size)

    print("\n" + "=" * 60)
    print("SAMPLING COMPLETE")
    print("=" * 60)
    print(f"Total rows: {total_extracted:,}")
    print(f"Households: {len(top_households):,} / {len(household_counts):,}")
    print(f"Time elapsed: {time.time() - start_time:.1f}s")


if __name__ == '__main__':
    main()
