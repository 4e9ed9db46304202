"""
Risk Scoring

Pure scoring functions for the risk register. No I/O.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from ..models.threat import RiskRating, Threat, Vulnerability, rating_for_score


def severity_score(likelihood: int, impact: int) -> int:
    """Likelihood x impact, both 1-5"""
    return likelihood * impact


def risk_rating(score: float) -> RiskRating:
    return rating_for_score(score)


def fair_ale(tef: float, vulnerability: float, primary_loss: float, secondary_loss: float) -> float:
    """FAIR annualized loss expectancy: loss event frequency x loss magnitude"""
    return tef * vulnerability * (primary_loss + secondary_loss)


def bip_necessity_score(threat_scores: Sequence[float], effectiveness: float) -> int:
    """
    How necessary a BIP is, 0-100.

    Average severity of the threats it addresses, normalised to 100 and
    scaled by how well it mitigates them (0-100).
    """
    if not threat_scores:
        return 0
    average = sum(threat_scores) / len(threat_scores)
    normalised = average / 25 * 100
    return min(100, round(normalised * (effectiveness / 100)))


def fud_validity_score(evidence_for: Sequence, evidence_against: Sequence) -> int:
    """0 = pure FUD, 100 = entirely valid; 50 without evidence"""
    total = len(evidence_for) + len(evidence_against)
    if total == 0:
        return 50
    return round(len(evidence_for) / total * 100)


def vulnerability_score(severity: int, exploitability: int) -> int:
    return severity * exploitability


@dataclass
class DerivedRisk:
    """Risk = a threat exploiting one of its linked vulnerabilities"""
    threat: Threat
    vulnerability: Vulnerability

    @property
    def id(self) -> str:
        return f"{self.threat.id}:{self.vulnerability.id}"

    @property
    def likelihood(self) -> int:
        return self.threat.likelihood

    @property
    def impact(self) -> int:
        return self.vulnerability.severity

    @property
    def risk_score(self) -> int:
        return self.likelihood * self.impact

    @property
    def risk_rating(self) -> RiskRating:
        return rating_for_score(self.risk_score)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "threat_id": self.threat.id,
            "vulnerability_id": self.vulnerability.id,
            "threat_name": self.threat.name,
            "vulnerability_name": self.vulnerability.name,
            "likelihood": self.likelihood,
            "impact": self.impact,
            "risk_score": self.risk_score,
            "risk_rating": self.risk_rating.value,
        }


def derive_risks(threats: Iterable[Threat], vulnerabilities: Iterable[Vulnerability]) -> List[DerivedRisk]:
    """One risk per (threat, linked vulnerability), highest score first"""
    by_id = {v.id: v for v in vulnerabilities}
    risks = []
    for threat in threats:
        for vuln_id in threat.vulnerability_ids:
            vuln = by_id.get(vuln_id)
            if vuln is not None:
                risks.append(DerivedRisk(threat, vuln))
    risks.sort(key=lambda r: r.risk_score, reverse=True)
    return risks


@dataclass
class MatrixCell:
    likelihood: int
    impact: int
    count: int = 0
    max_score: int = 0
    item_ids: List[str] = field(default_factory=list)

    @property
    def max_severity(self) -> RiskRating:
        return rating_for_score(self.max_score)

    def to_dict(self) -> dict:
        return {
            "likelihood": self.likelihood,
            "impact": self.impact,
            "count": self.count,
            "max_severity": self.max_severity.value,
            "item_ids": self.item_ids,
        }


def _build_matrix(items) -> List[List[MatrixCell]]:
    """items: (id, likelihood, impact) triples"""
    grid = {(l, i): MatrixCell(l, i) for l in range(1, 6) for i in range(1, 6)}
    for item_id, likelihood, impact in items:
        cell = grid.get((likelihood, impact))
        if cell is None:
            continue
        cell.count += 1
        cell.max_score = max(cell.max_score, likelihood * impact)
        cell.item_ids.append(item_id)
    # Rows run likelihood 5 -> 1, columns impact 1 -> 5
    return [[grid[(l, i)] for i in range(1, 6)] for l in range(5, 0, -1)]


def risk_matrix(threats: Iterable[Threat]) -> List[List[MatrixCell]]:
    """5x5 likelihood/impact grid of threats"""
    return _build_matrix((t.id, t.likelihood, t.impact) for t in threats)


def risk_matrix_from_risks(risks: Iterable[DerivedRisk]) -> List[List[MatrixCell]]:
    """5x5 grid of derived risks (impact = vulnerability severity)"""
    return _build_matrix((r.id, r.likelihood, r.impact) for r in risks)
