#!/usr/bin/env python3
"""
Dataset Validator for workforce allocation data

Runs the full validation pipeline (structural, referential, business,
operational) over JSON datasets of the form:

    {"clients": [...], "workers": [...], "tasks": [...], "rules": [...]}

Usage:
    python scripts/validate_dataset.py --file data/dataset.json
    python scripts/validate_dataset.py --dir data/
    python scripts/validate_dataset.py --file data/dataset.json --strict
    python scripts/validate_dataset.py --file data/dataset.json --json
"""

import sys
import json
import argparse
import pathlib
from pathlib import Path
from typing import Dict, List, Optional, Tuple

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

from allocation.engine.data_loader import load_dataset
from allocation.engine.findings import generate_fix_suggestions
from allocation.engine.orchestrator import validate_all

# ANSI color codes
RED = '\033[91m'
GREEN = '\033[92m'
YELLOW = '\033[93m'
BLUE = '\033[94m'
RESET = '\033[0m'
BOLD = '\033[1m'


def validate_file(filepath: str, strict_mode: bool = False) -> Tuple[bool, Dict]:
    """
    Validate one dataset file.

    Returns:
        (passed, result dict); with strict_mode, warnings also fail the file
    """
    try:
        dataset = load_dataset(filepath)
    except FileNotFoundError:
        return False, {"loadError": f"File not found: {filepath}"}
    except ValueError as e:
        return False, {"loadError": str(e)}

    result = validate_all(dataset["clients"], dataset["workers"], dataset["tasks"], dataset["rules"])
    passed = result.is_valid and not (strict_mode and result.warnings)

    report = result.to_dict()
    for finding, entry in zip(result.errors + result.warnings, report["errors"] + report["warnings"]):
        entry["suggestions"] = generate_fix_suggestions(finding)
    return passed, report


def _location(entry: Dict) -> str:
    parts = [entry.get("entity", "")]
    if entry.get("recordId"):
        parts.append(str(entry["recordId"]))
    elif entry.get("row"):
        parts.append(f"row {entry['row']}")
    if entry.get("field"):
        parts.append(entry["field"])
    return " / ".join(p for p in parts if p)


def print_results(filepath: str, passed: bool, report: Dict):
    """Print formatted validation results"""
    print(f"\n{BOLD}{'='*80}{RESET}")
    print(f"{BOLD}Validating: {Path(filepath).name}{RESET}")
    print(f"{BOLD}{'='*80}{RESET}")

    if "loadError" in report:
        print(f"\n{RED}{BOLD}✗ COULD NOT LOAD{RESET}")
        print(f"  {RED}✗{RESET} {report['loadError']}")
        print(f"\n{BOLD}{'='*80}{RESET}\n")
        return

    if passed:
        print(f"\n{GREEN}{BOLD}✓ VALIDATION PASSED{RESET}")
    else:
        print(f"\n{RED}{BOLD}✗ VALIDATION FAILED{RESET}")

    summary = report["summary"]
    print(f"\n{BLUE}{BOLD}Breakdown:{RESET}")
    for category, count in summary["breakdown"].items():
        print(f"  {BLUE}ℹ{RESET} {category}: {count}")

    if report["warnings"]:
        print(f"\n{YELLOW}{BOLD}Warnings ({len(report['warnings'])}):{RESET}")
        for entry in report["warnings"]:
            print(f"  {YELLOW}⚠{RESET} [{_location(entry)}] {entry['message']}")

    if report["errors"]:
        print(f"\n{RED}{BOLD}Errors ({len(report['errors'])}):{RESET}")
        for entry in report["errors"]:
            print(f"  {RED}✗{RESET} [{_location(entry)}] {entry['message']}")
            for suggestion in entry.get("suggestions", [])[:1]:
                print(f"      → {suggestion}")

    print(f"\n{BOLD}{'='*80}{RESET}\n")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Validate workforce allocation datasets',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/validate_dataset.py --file data/dataset.json
  python scripts/validate_dataset.py --dir data/
  python scripts/validate_dataset.py --file data/dataset.json --strict
        """
    )
    parser.add_argument('--file', help='Path to dataset file to validate')
    parser.add_argument('--dir', help='Directory of dataset files to validate')
    parser.add_argument('--strict', action='store_true',
                        help='Treat warnings as errors')
    parser.add_argument('--json', action='store_true',
                        help='Print machine-readable JSON instead of the coloured report')

    args = parser.parse_args(argv)

    if not args.file and not args.dir:
        parser.error("Must specify either --file or --dir")

    files_to_validate = []
    if args.file:
        files_to_validate.append(args.file)
    elif args.dir:
        data_dir = Path(args.dir)
        if not data_dir.exists():
            print(f"{RED}Error: Directory not found: {args.dir}{RESET}")
            return 1
        files_to_validate = sorted(data_dir.glob('*.json'))
        if not files_to_validate:
            print(f"{YELLOW}Warning: No JSON files found in {args.dir}{RESET}")
            return 0

    results = []
    for filepath in files_to_validate:
        passed, report = validate_file(str(filepath), strict_mode=args.strict)
        results.append((filepath, passed, report))
        if not args.json:
            print_results(str(filepath), passed, report)

    if args.json:
        print(json.dumps(
            [{"file": str(f), "passed": p, "report": r} for f, p, r in results],
            indent=2,
        ))
    elif len(results) > 1:
        passed_count = sum(1 for _, passed, _ in results if passed)
        print(f"\n{BOLD}{'='*80}{RESET}")
        print(f"{BOLD}OVERALL SUMMARY{RESET}")
        print(f"{BOLD}{'='*80}{RESET}")
        print(f"Total files: {len(results)}")
        print(f"{GREEN}Passed: {passed_count}{RESET}")
        print(f"{RED}Failed: {len(results) - passed_count}{RESET}")
        print(f"{BOLD}{'='*80}{RESET}\n")

    return 0 if all(passed for _, passed, _ in results) else 1


if __name__ == '__main__':
    sys.exit(main())
