"""감사 로그 서비스"""

import json
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """감사 이벤트 유형"""
    CALCULATION_STARTED = "CALCULATION_STARTED"
    CALCULATION_COMPLETED = "CALCULATION_COMPLETED"
    RULE_APPLIED = "RULE_APPLIED"
    RULE_SKIPPED = "RULE_SKIPPED"
    ERROR_OCCURRED = "ERROR_OCCURRED"


@dataclass
class AuditEntry:
    """감사 로그 엔트리"""
    event_type: AuditEventType
    calculation_id: str
    timestamp: datetime = field(default_factory=datetime.now)
    country_code: Optional[str] = None
    rule_id: Optional[str] = None
    request_data: Optional[Dict[str, Any]] = None
    response_data: Optional[Dict[str, Any]] = None
    error_data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        data = asdict(self)
        data['event_type'] = self.event_type.value
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        """JSON 문자열로 변환 (한 줄)"""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class AuditService:
    """감사 로그 서비스

    엔트리를 메모리에 보관하고 로거로 출력하며,
    로그 파일이 지정되면 JSON lines 형식으로 추가 기록합니다.
    """

    def __init__(self, log_file: Optional[str] = None):
        """
        Args:
            log_file: 로그 파일 경로 (None이면 파일에 기록하지 않음)
        """
        self.log_file = log_file
        self.entries: List[AuditEntry] = []

    def log_entry(self, entry: AuditEntry) -> None:
        """감사 엔트리 기록"""
        self.entries.append(entry)
        logger.info(
            "[AUDIT] %s %s country=%s rule=%s",
            entry.calculation_id,
            entry.event_type.value,
            entry.country_code,
            entry.rule_id
        )

        if self.log_file:
            self._write_to_file(entry)

    def _write_to_file(self, entry: AuditEntry) -> None:
        try:
            with open(self.log_file, 'a', encoding='utf-8') as f:
                f.write(entry.to_json())
                f.write('\n')
        except OSError as e:
            # 감사 파일 기록 실패는 계산 결과에 영향을 주지 않음
            logger.error("Failed to write audit log %s: %s", self.log_file, e)

    def get_calculation_audit_trail(self, calculation_id: str) -> List[AuditEntry]:
        """특정 계산의 감사 추적 조회"""
        return [entry for entry in self.entries if entry.calculation_id == calculation_id]

    def generate_audit_report(self, calculation_id: str) -> Dict[str, Any]:
        """감사 보고서 생성

        Args:
            calculation_id: 계산 ID

        Returns:
            전체 감사 보고서
        """
        trail = self.get_calculation_audit_trail(calculation_id)

        if not trail:
            return {
                "calculation_id": calculation_id,
                "message": "No audit trail found"
            }

        return {
            "calculation_id": calculation_id,
            "total_events": len(trail),
            "start_time": trail[0].timestamp.isoformat(),
            "end_time": trail[-1].timestamp.isoformat(),
            "events": [entry.to_dict() for entry in trail],
            "summary": self._generate_summary(trail)
        }

    def _generate_summary(self, trail: List[AuditEntry]) -> Dict[str, Any]:
        event_counts: Dict[str, int] = {}
        for entry in trail:
            event_type = entry.event_type.value
            event_counts[event_type] = event_counts.get(event_type, 0) + 1

        return {
            "event_counts": event_counts,
            "has_errors": any(
                entry.event_type == AuditEventType.ERROR_OCCURRED
                for entry in trail
            )
        }
