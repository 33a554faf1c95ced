from __future__ import annotations

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .allowlist import LicensePolicy, is_license_allowed
from .errors import LicenseGateError
from .models import AuditReport, EventCandidate, LicenseViolation, NormalizedOutput, Source, utc_now_iso

logger = logging.getLogger(__name__)


class GateState(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    REJECTED = "rejected"


def write_json_atomic(path: Path, payload: Any) -> Path:
    """Write to a temp file in the target dir, then rename over the target."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return path


def collect_sources(candidates: Iterable[EventCandidate]) -> List[Source]:
    seen: Dict[str, Source] = {}
    for c in candidates:
        sid = c.provenance.source_id
        if sid not in seen:
            seen[sid] = c.provenance.as_source()
    return list(seen.values())


class ProvenanceGate:
    """
    License admission check for a whole candidate set.

    PENDING -> VALIDATED when no candidate violates the allow-list,
    PENDING -> REJECTED otherwise. The audit is written either way; the
    normalized output only on VALIDATED.
    """

    def __init__(self, policy: LicensePolicy):
        self.policy = policy
        self.state = GateState.PENDING
        self.report: Optional[AuditReport] = None

    def evaluate(self, candidates: Sequence[EventCandidate]) -> AuditReport:
        violations: List[LicenseViolation] = []
        for c in candidates:
            if not is_license_allowed(c.provenance.license, self.policy):
                violations.append(
                    LicenseViolation(event_id=c.id, source_id=c.provenance.source_id, license=c.provenance.license)
                )

        report = AuditReport(
            generated_at=utc_now_iso(),
            ok=not violations,
            allowed_licenses=self.policy.sorted_allowed(),
            violations=violations,
        )
        self.report = report
        self.state = GateState.VALIDATED if report.ok else GateState.REJECTED
        return report

    def admit(self, candidates: Sequence[EventCandidate], output_path: Path, audit_path: Path) -> AuditReport:
        """
        Evaluate, always persist the audit, and write {generatedAt, sources, events}
        only when every candidate passes. Raises LicenseGateError on rejection.
        """
        report = self.evaluate(candidates)
        write_json_atomic(audit_path, report.model_dump(by_alias=True, mode="json"))

        if self.state is GateState.REJECTED:
            logger.error("license gate rejected %d event(s); audit=%s", len(report.violations), audit_path)
            raise LicenseGateError(len(report.violations), audit_path)

        output = NormalizedOutput(
            generated_at=report.generated_at,
            sources=collect_sources(candidates),
            events=list(candidates),
        )
        write_json_atomic(output_path, output.model_dump(by_alias=True, mode="json"))
        logger.info("license gate validated %d event(s); wrote %s", len(candidates), output_path)
        return report
