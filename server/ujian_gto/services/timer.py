"""
Exam attempt lifecycle: duration parsing, start persistence, countdown and
the client restrictions that apply while an attempt runs.

Only the start timestamp is persisted (key `exam_start_<examId>`); the
remaining time is always recomputed from the wall clock on re-entry, so a
page reload never resets the countdown.
"""
import logging
import re
from typing import Callable, Optional

from ujian_gto.config import settings
from ujian_gto.datetime_utils import now_ts
from ujian_gto.schemas import AttemptState, ProctorPolicy
from ujian_gto.services.local_state import KeyValueStore, exam_start_key

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"\d+")

# Developer-tool shortcuts suppressed while an attempt runs (cosmetic only)
BLOCKED_SHORTCUTS = ["F12", "Ctrl+Shift+I", "Ctrl+Shift+J", "Ctrl+Shift+C", "Ctrl+U"]


def parse_duration(text: Optional[str], default_seconds: int = None) -> int:
    """
    Turn a loosely formatted duration into seconds.

    "2 Jam" -> 7200, "120 Menit" -> 7200, "90" -> 5400. The first run of
    digits is the amount; "jam" means hours, anything else minutes. Text
    without digits, or a zero amount, falls back to the default exam length.
    """
    if default_seconds is None:
        default_seconds = settings.default_exam_seconds
    if not text:
        return default_seconds
    match = _DIGITS.search(str(text))
    if not match:
        return default_seconds
    amount = int(match.group())
    if amount == 0:
        return default_seconds
    if "jam" in str(text).lower():
        return amount * 3600
    return amount * 60


def format_time(seconds: int) -> str:
    """Format seconds as HH:MM:SS."""
    seconds = max(0, int(seconds))
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def remaining_after(total_seconds: int, start_ts: float, now: float) -> int:
    """Seconds left for an attempt started at `start_ts`; never negative."""
    elapsed = int(now - start_ts)
    return max(0, total_seconds - elapsed)


class AttemptController:
    """
    Lifecycle of one student's attempt at one exam.

    enter() -> accept_rules() -> tick()... -> finish()
    """

    def __init__(
        self,
        exam_id: str,
        duration: Optional[str],
        owner: str,
        store: KeyValueStore,
        clock: Callable[[], float] = now_ts,
        low_time_threshold: int = None,
    ):
        self.exam_id = exam_id
        self.owner = owner
        self.store = store
        self.clock = clock
        self.low_time_threshold = (
            settings.low_time_threshold_seconds if low_time_threshold is None else low_time_threshold
        )
        self.total_seconds = parse_duration(duration)
        self.key = exam_start_key(exam_id)

        self.started = False
        self.agreed_to_rules = False
        self.submitted = False
        self.start_ts: Optional[float] = None
        self.remaining = self.total_seconds

    def _persisted_start(self) -> Optional[float]:
        raw = self.store.get(self.owner, self.key)
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            logger.warning("⚠️ Ignoring unreadable start timestamp %r for %s/%s", raw, self.owner, self.exam_id)
            return None

    def enter(self) -> AttemptState:
        """Load the attempt, recovering elapsed time from a persisted start."""
        start = self._persisted_start()
        if start is None:
            self.started = False
            self.agreed_to_rules = False
            self.start_ts = None
            self.remaining = self.total_seconds
        else:
            self.started = True
            self.agreed_to_rules = True
            self.start_ts = start
            self.remaining = remaining_after(self.total_seconds, start, self.clock())
            if self.remaining == 0:
                logger.info("⏰ Attempt %s/%s re-entered after expiry", self.owner, self.exam_id)
        return self.state()

    def accept_rules(self) -> AttemptState:
        """Start the countdown. Accepting twice keeps the original start."""
        existing = self._persisted_start()
        if existing is not None:
            return self.enter()
        now = self.clock()
        self.store.set(self.owner, self.key, repr(now))
        self.started = True
        self.agreed_to_rules = True
        self.start_ts = now
        self.remaining = self.total_seconds
        logger.info("▶️ Attempt started: student=%s exam=%s total=%ss", self.owner, self.exam_id, self.total_seconds)
        return self.state()

    def tick(self) -> int:
        """One-second step; stops at zero and never submits on its own."""
        if self.started and not self.submitted and self.remaining > 0:
            self.remaining -= 1
        return self.remaining

    def is_running(self) -> bool:
        return self.started and not self.submitted and self.remaining > 0

    def is_late(self) -> bool:
        """Late iff no time is left right now."""
        if self.start_ts is None:
            return False
        return remaining_after(self.total_seconds, self.start_ts, self.clock()) <= 0

    def finish(self) -> None:
        """Mark submitted and drop the persisted start (no-op when absent)."""
        self.submitted = True
        self.store.remove(self.owner, self.key)

    def proctor_policy(self) -> ProctorPolicy:
        active = self.started and not self.submitted
        return ProctorPolicy(
            confirm_on_unload=active,
            block_context_menu=active,
            blocked_shortcuts=list(BLOCKED_SHORTCUTS) if active else [],
            enforcing=False,
        )

    def state(self) -> AttemptState:
        return AttemptState(
            exam_id=self.exam_id,
            started=self.started,
            agreed_to_rules=self.agreed_to_rules,
            start_timestamp=self.start_ts,
            total_seconds=self.total_seconds,
            remaining_seconds=self.remaining,
            remaining_display=format_time(self.remaining),
            is_low_time=self.started and self.remaining < self.low_time_threshold,
            is_expired=self.started and self.remaining <= 0,
            submitted=self.submitted,
            proctor=self.proctor_policy(),
        )
