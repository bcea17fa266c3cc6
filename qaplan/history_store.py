"""
History Store
Keeps generated test plans and recently fetched tickets in JSON files
"""
import json
import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pathlib import Path

from .models import PlanRecord, RecentTicket, Ticket

logger = logging.getLogger(__name__)

MAX_RECENT_TICKETS = 10


class HistoryStore:
    """File-backed history of generations and fetched tickets"""

    def __init__(self, base_dir: Path, max_recent_tickets: int = MAX_RECENT_TICKETS):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.plans_path = self.base_dir / "test_plan_history.json"
        self.recent_path = self.base_dir / "recent_tickets.json"
        self.max_recent_tickets = max_recent_tickets

    def _load(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt history file {path}: {e}")
            return []
        return data if isinstance(data, list) else []

    def _save(self, path: Path, entries: List[Dict[str, Any]]) -> None:
        path.write_text(json.dumps(entries, indent=2, default=str), encoding='utf-8')

    # =====================================
    # GENERATED TEST PLANS
    # =====================================

    def record_plan(
        self,
        ticket_id: str,
        template_id: Optional[str],
        generated_content: str,
        provider_used: str,
        template_name: Optional[str] = None
    ) -> PlanRecord:
        """Append a generated plan to history"""
        entries = self._load(self.plans_path)
        next_id = max((entry.get('id', 0) for entry in entries), default=0) + 1

        record = PlanRecord(
            id=next_id,
            ticket_id=ticket_id,
            template_id=template_id,
            template_name=template_name,
            provider_used=provider_used,
            generated_content=generated_content,
            created_at=datetime.now(timezone.utc)
        )
        entries.append(record.model_dump(mode='json'))
        self._save(self.plans_path, entries)

        logger.info(f"Recorded test plan #{record.id} for {ticket_id} ({provider_used})")
        return record

    def list_plans(self, limit: int = 20) -> List[PlanRecord]:
        """Most recent plans first"""
        records = [PlanRecord.model_validate(entry) for entry in self._load(self.plans_path)]
        records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return records[:limit]

    def get_plan(self, plan_id: int) -> Optional[PlanRecord]:
        for entry in self._load(self.plans_path):
            if entry.get('id') == plan_id:
                return PlanRecord.model_validate(entry)
        return None

    # =====================================
    # RECENT TICKETS
    # =====================================

    def record_recent_ticket(self, ticket: Ticket) -> RecentTicket:
        """Remember a fetched ticket, keeping only the latest few"""
        entries = [e for e in self._load(self.recent_path) if e.get('ticket_id') != ticket.key]

        recent = RecentTicket(
            ticket_id=ticket.key,
            summary=ticket.summary,
            fetched_at=datetime.now(timezone.utc)
        )
        entries.insert(0, recent.model_dump(mode='json'))
        self._save(self.recent_path, entries[:self.max_recent_tickets])
        return recent

    def list_recent_tickets(self, limit: int = 5) -> List[RecentTicket]:
        # Entries are kept newest first
        return [RecentTicket.model_validate(entry) for entry in self._load(self.recent_path)[:limit]]
