import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel

from .exceptions import CourierDeskError

logger = logging.getLogger(__name__)


class ItemOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class BatchItem(BaseModel):
    id: str
    outcome: ItemOutcome
    error: Optional[str] = None


class BatchResult(BaseModel):
    """Per-item outcome of a sequential, non-atomic bulk mutation.

    Writes are not rolled back: items before the failure stay applied, the
    failing item is FAILED and everything after it is SKIPPED.
    """
    action: str
    items: List[BatchItem] = []

    @property
    def succeeded(self) -> List[str]:
        return [i.id for i in self.items if i.outcome == ItemOutcome.SUCCEEDED]

    @property
    def failed(self) -> List[str]:
        return [i.id for i in self.items if i.outcome == ItemOutcome.FAILED]

    @property
    def skipped(self) -> List[str]:
        return [i.id for i in self.items if i.outcome == ItemOutcome.SKIPPED]

    @property
    def ok(self) -> bool:
        return all(i.outcome == ItemOutcome.SUCCEEDED for i in self.items)

    def summary(self) -> dict:
        return {
            "action": self.action,
            "ok": self.ok,
            "total": len(self.items),
            "succeeded": self.succeeded,
            "failed": [{"id": i.id, "error": i.error} for i in self.items if i.outcome == ItemOutcome.FAILED],
            "skipped": self.skipped,
        }


async def run_batch(
    action: str,
    ids: List[str],
    apply: Callable[[str], Awaitable[None]],
    stop_on_error: bool = True,
) -> BatchResult:
    result = BatchResult(action=action)

    for index, item_id in enumerate(ids):
        try:
            await apply(item_id)
        except CourierDeskError as e:
            logger.warning("%s failed for %s: %s", action, item_id, e)
            result.items.append(BatchItem(id=item_id, outcome=ItemOutcome.FAILED, error=e.message))
            if stop_on_error:
                result.items.extend(
                    BatchItem(id=rest, outcome=ItemOutcome.SKIPPED) for rest in ids[index + 1:]
                )
                break
            continue
        result.items.append(BatchItem(id=item_id, outcome=ItemOutcome.SUCCEEDED))

    return result
