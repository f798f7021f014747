"""Advisory human-approval records.

Requests never block the entity. The pending list is mirrored to a JSON
snapshot so an operator (or the CLI) can see what is waiting; nothing in
the framework waits for a response.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from ..notifications import NotificationFanout
from ..utils.atomic_io import atomic_write_models
from .models import ApprovalRequest

logger = logging.getLogger(__name__)

PENDING_FILENAME = "pending_approvals.json"
RESOLVED_FILENAME = "resolved_approvals.jsonl"


class ApprovalGate:
    """Records approval requests for one entity."""

    def __init__(
        self,
        output_dir: Path,
        notifier: Optional[NotificationFanout] = None,
        reload_pending: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.notifier = notifier
        self.pending_path = self.output_dir / PENDING_FILENAME
        self.resolved_path = self.output_dir / RESOLVED_FILENAME
        self._pending: List[ApprovalRequest] = []
        self._last_id_ms = 0
        self._last_id_seq = 0

        if reload_pending:
            self._pending = self._load_snapshot()

    def _load_snapshot(self) -> List[ApprovalRequest]:
        if not self.pending_path.exists():
            return []
        try:
            raw = json.loads(self.pending_path.read_text())
            if not isinstance(raw, list):
                raise ValueError("expected a JSON array")
            requests = [ApprovalRequest.model_validate(item) for item in raw]
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable approval snapshot {self.pending_path}: {e}")
            return []
        logger.debug(f"Reloaded {len(requests)} pending approval(s) from {self.pending_path}")
        return requests

    def _next_id(self) -> str:
        now_ms = int(time.time() * 1000)
        taken = {req.id for req in self._pending}
        if now_ms > self._last_id_ms:
            self._last_id_ms, self._last_id_seq = now_ms, 0
        else:
            # Same millisecond (or clock stepped back): keep ids unique and ordered
            self._last_id_seq += 1

        while True:
            if self._last_id_seq:
                candidate = f"approval_{self._last_id_ms}_{self._last_id_seq}"
            else:
                candidate = f"approval_{self._last_id_ms}"
            if candidate not in taken:
                return candidate
            self._last_id_seq += 1

    def _write_snapshot(self) -> None:
        atomic_write_models(self.pending_path, self._pending)

    @property
    def pending(self) -> List[ApprovalRequest]:
        """Copy of the pending requests, oldest first."""
        return list(self._pending)

    async def request(
        self,
        description: str,
        details: str,
        options: Optional[Sequence[str]] = None,
    ) -> ApprovalRequest:
        """Record a request, rewrite the snapshot and announce it. Returns immediately."""
        kwargs = {"options": list(options)} if options is not None else {}
        approval = ApprovalRequest(
            id=self._next_id(),
            description=description,
            details=details,
            **kwargs,
        )
        self._pending.append(approval)
        self._write_snapshot()
        logger.info(f"Approval requested ({approval.id}): {description}")

        if self.notifier:
            await self.notifier.notify(f"Approval needed: {description}", "approval")
        return approval

    def resolve(self, approval_id: str, response: str) -> Optional[ApprovalRequest]:
        """
        Mark a pending request as answered.

        Bookkeeping only: the resolved request moves from the snapshot to
        the resolved log. Nothing that requested it is resumed.

        Returns:
            The resolved request, or None if no pending request has that id

        Raises:
            ValueError: If response is not one of the request's options
        """
        for index, approval in enumerate(self._pending):
            if approval.id == approval_id:
                break
        else:
            logger.warning(f"No pending approval with id {approval_id}")
            return None

        if response not in approval.options:
            raise ValueError(
                f"Response '{response}' is not one of {', '.join(approval.options)}"
            )

        resolved = approval.model_copy(
            update={"resolution": response, "resolved_at": datetime.now(timezone.utc)}
        )
        del self._pending[index]

        self.resolved_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.resolved_path, "a", encoding="utf-8") as f:
            f.write(resolved.model_dump_json() + "\n")
        self._write_snapshot()

        logger.info(f"Approval {approval_id} resolved: {response}")
        return resolved
