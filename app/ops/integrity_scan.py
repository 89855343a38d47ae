from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from dataclasses import asdict

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.ops.integrity_checks import SEVERITY_CRITICAL, SEVERITY_WARN, IntegrityFinding, run_integrity_checks
from app.stockflow.core.config import settings

EXIT_OK = 0
EXIT_CRITICAL = 1
EXIT_DISABLED = 2


def _summarize(findings: list[IntegrityFinding]) -> dict:
    severities = Counter(finding.severity for finding in findings)
    return {
        "total": len(findings),
        "critical": severities.get(SEVERITY_CRITICAL, 0),
        "warn": severities.get(SEVERITY_WARN, 0),
        "by_check": dict(sorted(Counter(finding.check_id for finding in findings).items())),
    }


def _render_text(summary: dict, findings: list[IntegrityFinding]) -> str:
    out = [
        "Integrity Scan Report",
        f"Total findings: {summary['total']}",
        f"CRITICAL: {summary['critical']}",
        f"WARN: {summary['warn']}",
    ]
    for check_id, count in summary["by_check"].items():
        out.append(f"  {check_id}: {count}")
    out.append("")
    # critical findings first, then by check
    for finding in sorted(findings, key=lambda item: (item.severity != SEVERITY_CRITICAL, item.check_id)):
        out.append(f"[{finding.severity}] {finding.check_id} {finding.entity}/{finding.entity_id or '-'}: {finding.message}")
        if finding.details:
            out.append(f"  details={json.dumps(finding.details, default=str, sort_keys=True)}")
    return "\n".join(out)


def _collect_findings(database_url: str) -> list[IntegrityFinding]:
    engine = create_engine(database_url, future=True)
    try:
        with sessionmaker(bind=engine, future=True)() as db:
            return run_integrity_checks(db)
    finally:
        engine.dispose()


def run_scan(output_format: str, fail_on_critical: bool, *, database_url: str | None = None) -> int:
    if not settings.OPS_ENABLE_INTEGRITY_SCAN:
        print("Integrity scan disabled by OPS_ENABLE_INTEGRITY_SCAN.", file=sys.stderr)
        return EXIT_DISABLED
    findings = _collect_findings(database_url or settings.DATABASE_URL)
    summary = _summarize(findings)
    if output_format == "json":
        print(json.dumps({"summary": summary, "findings": [asdict(f) for f in findings]}, indent=2, default=str))
    else:
        print(_render_text(summary, findings))
    if fail_on_critical and summary["critical"]:
        return EXIT_CRITICAL
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Read-only consistency scan of the stock transfer database")
    parser.add_argument("--format", choices=["json", "text"], default="text")
    parser.add_argument("--fail-on-critical", action="store_true", help="Exit 1 when any CRITICAL finding exists")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    args = parser.parse_args(argv)
    return run_scan(args.format, args.fail_on_critical, database_url=args.database_url)


if __name__ == "__main__":
    raise SystemExit(main())
