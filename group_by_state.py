#!/usr/bin/env python3
"""
Script to group the pancreatic map provider data by state.
Normalizes each raw provider record and buckets it under its full state name,
ranked by pancreatic cancer count.

Usage:
    python group_by_state.py [input] [output_file]

Arguments:
    input: Path to the raw JSON array, or an http(s) URL to fetch it from
           (default: the published pancreatic map data blob)
    output_file: Path to output JSON file (default: doctors_by_state.json)

Examples:
    # Fetch the published data and write doctors_by_state.json
    python group_by_state.py

    # Group a local copy
    python group_by_state.py pancreatic-map-data.json grouped.json
"""

import json
import sys
from typing import Any, Dict, List

import httpx

from Back_End.normalize import build_state_index

DEFAULT_SOURCE = 'https://docnexus-assets.s3.us-east-1.amazonaws.com/files/pancreatic-map-data-1.json'
DEFAULT_OUTPUT = 'doctors_by_state.json'


def load_records(source: str) -> List[Dict[str, Any]]:
    """
    Read raw provider records from a local file or a URL.
    """
    if source.startswith(('http://', 'https://')):
        response = httpx.get(source, timeout=60)
        response.raise_for_status()
        return response.json()

    with open(source, 'r', encoding='utf-8') as f:
        return json.load(f)


def group_doctors_by_state(source: str, output_file: str = None) -> Dict[str, Any]:
    """
    Load raw records and group them into the state-keyed doctor index.

    Args:
        source: Path or URL of the raw JSON array
        output_file: Path to output JSON file (optional)

    Returns:
        Dictionary with grouping metadata and the index
    """
    records = load_records(source)
    index = build_state_index(records)

    output_data = {
        "meta": {
            "source": source,
            "total_doctors": sum(len(doctors) for doctors in index.values()),
            "total_states": len(index),
        },
        "states": index,
    }

    if output_file:
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(output_data, f, indent=2, ensure_ascii=False)
        print(f"[OK] Grouped {output_data['meta']['total_doctors']} doctors into {len(index)} states")
        print(f"[OK] Output written to: {output_file}")

    return output_data


def main():
    """Main function to run the script."""
    source = DEFAULT_SOURCE
    output_file = DEFAULT_OUTPUT

    if len(sys.argv) > 1:
        source = sys.argv[1]
    if len(sys.argv) > 2:
        output_file = sys.argv[2]

    try:
        result = group_doctors_by_state(source, output_file)

        print("\n" + "="*60)
        print("GROUPING SUMMARY")
        print("="*60)
        print(f"Total doctors: {result['meta']['total_doctors']}")
        print(f"Total states: {result['meta']['total_states']}")

        states_by_count = sorted(result['states'].items(), key=lambda x: len(x[1]), reverse=True)
        print("\nTop 10 states by doctor count:")
        for i, (state, doctors) in enumerate(states_by_count[:10], 1):
            print(f"  {i}. {state or '(no state)'} - {len(doctors)} doctors")

    except FileNotFoundError:
        print(f"Error: File '{source}' not found.")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in '{source}': {e}")
        sys.exit(1)
    except httpx.HTTPError as e:
        print(f"Error: Could not fetch '{source}': {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
