"""tools/github/sarif.py

Minimal SARIF helpers: severity buckets, rule lookup, and turning one SARIF
result into a GitHub issue draft.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

from pipeline.constants import ISSUE_FOOTER, ISSUE_TITLE_PREFIX
from pipeline.models import IssueDraft

UNKNOWN_SEVERITY = "Unknown"


def map_severity(rating: Any) -> Optional[str]:
    """Bucket a ``security-severity`` rating.

    >= 9 Critical, >= 7 High, >= 4 Medium, > 0 Low, otherwise Info.
    Non-numeric strings pass through unchanged; missing ratings give None.
    """
    if rating is None or rating == "":
        return None
    try:
        value = float(rating)
    except (TypeError, ValueError):
        return str(rating)

    if value >= 9:
        return "Critical"
    if value >= 7:
        return "High"
    if value >= 4:
        return "Medium"
    if value > 0:
        return "Low"
    return "Info"


def rules_by_id(run_obj: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    rules = (((run_obj.get("tool") or {}).get("driver") or {}).get("rules")) or []
    out: Dict[str, Dict[str, Any]] = {}
    if isinstance(rules, list):
        for r in rules:
            if isinstance(r, dict) and isinstance(r.get("id"), str):
                out[r["id"]] = r
    return out


def _text(obj: Any, key: str) -> Optional[str]:
    if not isinstance(obj, dict):
        return None
    inner = obj.get(key)
    if isinstance(inner, dict) and isinstance(inner.get("text"), str) and inner["text"].strip():
        return inner["text"]
    return None


def _locations(result: Dict[str, Any]) -> List[Tuple[str, Any]]:
    out: List[Tuple[str, Any]] = []
    for loc in result.get("locations") or []:
        phys = (loc or {}).get("physicalLocation") or {}
        uri = (phys.get("artifactLocation") or {}).get("uri")
        line = (phys.get("region") or {}).get("startLine")
        if uri:
            out.append((str(uri), line))
    return out


def iter_results(report: Dict[str, Any]) -> Iterator[Tuple[Dict[str, Any], Dict[str, Any]]]:
    """Yield ``(run, result)`` pairs in document order."""
    for run in report.get("runs") or []:
        if not isinstance(run, dict):
            continue
        for result in run.get("results") or []:
            if isinstance(result, dict):
                yield run, result


def issue_from_result(
    result: Dict[str, Any],
    rules: Dict[str, Dict[str, Any]],
    run_obj: Dict[str, Any],
) -> IssueDraft:
    rule_id = str(result.get("ruleId") or "")
    rule = rules.get(rule_id) or {}
    tool_name = ((run_obj.get("tool") or {}).get("driver") or {}).get("name") or ""

    rating = (rule.get("properties") or {}).get("security-severity")
    severity = map_severity(rating) or UNKNOWN_SEVERITY
    rule_title = _text(rule, "shortDescription") or rule_id

    message = _text(result, "message")
    description = _text(rule, "fullDescription") or _text(rule, "shortDescription") or message or ""
    if message:
        description += f"\n{message}\n\n"

    title = f"{ISSUE_TITLE_PREFIX}[{severity}] {rule_title}"

    body = "## Issue Details\n"
    body += f"**Tool:** {tool_name}\n"
    body += f"**Rule ID:** {rule_id}\n"
    body += f"**Severity:** {severity}\n\n"
    body += f"## Description \n {description}\n\n"

    help_obj = rule.get("help") or {}
    if help_obj.get("markdown"):
        body += f"{help_obj['markdown']}\n\n"
    elif help_obj.get("text"):
        body += f"{help_obj['text']}\n\n"

    locations = _locations(result)
    if locations:
        body += "## Location(s) \n"
        for uri, line in locations:
            body += f"- File: `{uri}`, Line: {line}\n"

    body += f"\n---\n{ISSUE_FOOTER}"
    return IssueDraft(title=title, body=body)
