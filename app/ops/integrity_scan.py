"""Offline consistency scan over persisted transfers.

Exit codes: 0 clean (or findings without ``--fail-on-critical``), 1 critical
findings with ``--fail-on-critical``, 2 scan disabled or bad arguments.
"""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from collections import Counter, defaultdict
from dataclasses import asdict

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.ops.integrity_checks import CHECKS, SEVERITY_CRITICAL, SEVERITY_WARN, IntegrityFinding, resolve_transfers, run_integrity_checks
from app.stockflow.core.config import settings


def _summary(findings: list[IntegrityFinding], scanned: int, checks: list[str]) -> dict:
    by_severity = Counter(finding.severity for finding in findings)
    by_check = Counter(finding.check_id for finding in findings)
    return {
        "transfers_scanned": scanned,
        "total": len(findings),
        "critical": by_severity[SEVERITY_CRITICAL],
        "warn": by_severity[SEVERITY_WARN],
        "by_check": {check_id: by_check[check_id] for check_id in checks},
    }


def _render_text(summary: dict, findings: list[IntegrityFinding]) -> str:
    out = [
        "Transfer Integrity Scan",
        f"Transfers scanned: {summary['transfers_scanned']}",
        f"Total findings: {summary['total']} (CRITICAL: {summary['critical']}, WARN: {summary['warn']})",
    ]
    out.extend(f"  {check_id}: {count}" for check_id, count in summary["by_check"].items())

    grouped: dict[str, list[IntegrityFinding]] = defaultdict(list)
    for finding in findings:
        grouped[finding.transfer_id].append(finding)
    for transfer_id, items in grouped.items():
        out.append("")
        out.append(f"transfer {transfer_id}")
        for finding in items:
            target = f"{finding.entity}:{finding.entity_id}" if finding.entity_id else finding.entity
            out.append(f"  {finding.severity:<8} {finding.check_id} {target} {finding.message}")
            if finding.details:
                out.append(f"           {json.dumps(finding.details, default=str, sort_keys=True)}")
    return "\n".join(out)


def run_scan(
    transfer: str,
    output_format: str,
    fail_on_critical: bool,
    *,
    database_url: str | None = None,
    checks: list[str] | None = None,
) -> int:
    if not settings.OPS_ENABLE_INTEGRITY_SCAN:
        print("Integrity scan disabled by OPS_ENABLE_INTEGRITY_SCAN.", file=sys.stderr)
        return 2
    selected = list(checks or CHECKS)

    engine = create_engine(database_url or settings.DATABASE_URL, future=True)
    Session = sessionmaker(bind=engine, autoflush=False, future=True)
    findings: list[IntegrityFinding] = []
    try:
        with Session() as db:
            transfer_ids = resolve_transfers(db, transfer)
            for transfer_id in transfer_ids:
                findings.extend(run_integrity_checks(db, transfer_id, selected))
    finally:
        engine.dispose()

    summary = _summary(findings, len(transfer_ids), selected)
    if output_format == "json":
        report = {"summary": summary, "findings": [asdict(finding) for finding in findings]}
        print(json.dumps(report, indent=2, default=str))
    else:
        print(_render_text(summary, findings))
    return 1 if fail_on_critical and summary["critical"] else 0


def _transfer_argument(value: str) -> str:
    if value.lower() == "all":
        return "all"
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a transfer id: {value!r}") from None


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="stockflow-integrity-scan", description="Transfer workflow integrity scan")
    parser.add_argument("--transfer", type=_transfer_argument, default="all", help="transfer id or 'all'")
    parser.add_argument("--check", action="append", choices=sorted(CHECKS), help="run only this check (repeatable)")
    parser.add_argument("--format", choices=["json", "text"], default="text")
    parser.add_argument("--fail-on-critical", action="store_true")
    parser.add_argument("--database-url", default=None, help="override DATABASE_URL")
    args = parser.parse_args(argv)
    return run_scan(
        args.transfer,
        args.format,
        args.fail_on_critical,
        database_url=args.database_url,
        checks=args.check,
    )


if __name__ == "__main__":
    raise SystemExit(main())
