"""Ingestion of exported scenario files.

This module reads JSON scenario files (as produced by the export
endpoint) from a data folder and stores each one as a fund. A file is
matched to a fund by its ``fundName``, falling back to the file name
without extension. Re-ingesting a file replaces that fund's ledger,
working valuation and history.
"""

from __future__ import annotations

import json
import logging
import os
from sqlalchemy.orm import Session
from .bootstrap import get_or_create_fund, replace_fund_contents
from .scenario import parse_scenario

logger = logging.getLogger(__name__)


def ingest_file(session: Session, path: str):
    """Ingest a single scenario file into the database.

    Raises ``ValueError`` if the file is not valid JSON or does not match
    the scenario format.
    """
    with open(path, encoding="utf-8") as fh:
        try:
            raw = json.load(fh)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e
    parsed = parse_scenario(raw)
    if not parsed.ok:
        raise ValueError(parsed.reason)
    scenario = parsed.value
    name = scenario.fund_name or os.path.splitext(os.path.basename(path))[0]
    fund = get_or_create_fund(session, name)
    replace_fund_contents(session, fund, scenario)
    logger.info("Ingested %s as fund %r (%d cash flows, %d snapshots)",
                os.path.basename(path), name, len(scenario.cashflows), len(scenario.history))
    return {
        "fund": name,
        "cashflows": len(scenario.cashflows),
        "snapshots": len(scenario.history),
    }


def ingest_all(session: Session, data_dir: str = "data"):
    """Ingest all JSON files in the given directory.

    Files are processed in sorted order. The result is a list of
    dictionaries summarising each file's ingestion status. A bad file is
    reported with its error and does not stop the others.
    """
    results = []
    if not os.path.isdir(data_dir):
        return [
            {
                "file": None,
                "status": "error",
                "error": f"missing folder {data_dir}",
            }
        ]
    for fn in sorted(os.listdir(data_dir)):
        if not fn.lower().endswith(".json"):
            continue
        path = os.path.join(data_dir, fn)
        try:
            sm = ingest_file(session, path)
            results.append({"file": fn, "status": "ok", "summary": sm})
        except (OSError, ValueError) as e:
            session.rollback()
            logger.warning("Could not ingest %s: %s", fn, e)
            results.append({"file": fn, "status": "error", "error": str(e)})
    return results
