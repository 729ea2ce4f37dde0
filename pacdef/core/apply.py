"""
Review/Apply controller

Drives one run through its states:

    COMPUTED -> REVIEWED -> APPLYING -> DONE
        |           |
        +-----------+--> ABORTED   (nothing to do, or the user declined)

Confirmed actions are grouped into one batch per (backend, kind). Backends
are processed in tag order; for each backend the install batch runs before
the remove batch, and the remove batch is skipped if the install batch
failed. A failing batch never stops the other backends.

Ctrl+C during APPLYING lets the running batch finish and skips the rest.
"""

import logging
import signal
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Tuple

from .backend import Backend, MutationResult
from .config import ReviewMode
from .errors import BackendMutationError
from .reconcile import Action, ActionKind, Plan

logger = logging.getLogger(__name__)


class RunState(Enum):
    """State of a review/apply run."""
    COMPUTED = "computed"
    REVIEWED = "reviewed"
    APPLYING = "applying"
    DONE = "done"
    ABORTED = "aborted"


class Confirmer:
    """Confirmation capability used during review.

    The default implementation accepts everything; the CLI injects an
    interactive prompt, tests inject a ScriptedConfirmer.
    """

    def confirm(self, action: Action) -> bool:
        """Confirm a single action (per-action review)."""
        return True

    def confirm_all(self, actions: List[Action]) -> bool:
        """Confirm the whole list at once (confirm-all review)."""
        return True


class ScriptedConfirmer(Confirmer):
    """Non-interactive confirmer with predetermined answers.

    Args:
        answers: Action -> answer, or (backend, package) -> answer
        default: Answer for actions not in `answers`
        accept_all: Answer to confirm_all()

    Attributes:
        asked: Every action confirm() was called with, in order
    """

    def __init__(self, answers: Dict = None, default: bool = True,
                 accept_all: bool = True):
        self.answers = dict(answers or {})
        self.default = default
        self.accept_all = accept_all
        self.asked: List[Action] = []
        self.asked_all = 0

    def confirm(self, action: Action) -> bool:
        self.asked.append(action)
        if action in self.answers:
            return self.answers[action]
        return self.answers.get((action.backend, action.package), self.default)

    def confirm_all(self, actions: List[Action]) -> bool:
        self.asked_all += 1
        return self.accept_all


@dataclass
class BatchFailure:
    """A batch that raised, with per-package detail from the adapter."""
    backend: str
    kind: ActionKind
    packages: Tuple[str, ...]
    reason: str
    details: Dict[str, str] = field(default_factory=dict)


@dataclass
class ApplyReport:
    """What happened during a run."""
    state: RunState = RunState.COMPUTED
    confirmed: List[Action] = field(default_factory=list)
    dropped: List[Action] = field(default_factory=list)
    applied: List[MutationResult] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)
    skipped: List[Tuple[str, ActionKind, Tuple[str, ...]]] = field(default_factory=list)
    interrupted: bool = False

    @property
    def success(self) -> bool:
        return not self.failures and not self.interrupted

    def failures_for(self, backend: str) -> List[BatchFailure]:
        return [f for f in self.failures if f.backend == backend]


BatchCallback = Callable[[str, ActionKind, Tuple[str, ...]], None]


def make_batches(actions: Iterable[Action]) -> List[Tuple[str, ActionKind, Tuple[str, ...]]]:
    """Group actions into (backend, kind, packages) batches in apply order."""
    grouped: Dict[Tuple[str, ActionKind], set] = {}
    for action in actions:
        grouped.setdefault((action.backend, action.kind), set()).add(action.package)

    order = {ActionKind.INSTALL: 0, ActionKind.REMOVE: 1}
    batches = []
    for backend, kind in sorted(grouped, key=lambda k: (k[0], order[k[1]])):
        batches.append((backend, kind, tuple(sorted(grouped[(backend, kind)]))))
    return batches


class ReviewApplyController:
    """Review a plan and apply the confirmed actions.

    Args:
        plan: Reconciler output
        backends: Active backends by tag
        review: Review mode
        confirmer: Confirmation capability (default: accept everything)
        requery: Optional callable returning a fresh Plan; when given, it is
            called after review and confirmed actions no longer in the fresh
            plan are dropped
        on_batch_start: Called before each batch
        on_batch_done: Called after each successful batch

    Usage:
        controller = ReviewApplyController(plan, active, ReviewMode.PER_ACTION, prompt)
        report = controller.run()
        if not report.success:
            for failure in report.failures:
                print(failure.backend, failure.details)
    """

    def __init__(self, plan: Plan, backends: Mapping[str, Backend],
                 review: ReviewMode = ReviewMode.CONFIRM_ALL,
                 confirmer: Confirmer = None,
                 requery: Callable[[], Plan] = None,
                 on_batch_start: BatchCallback = None,
                 on_batch_done: BatchCallback = None):
        self.plan = plan
        self.backends = dict(backends)
        self.review_mode = review
        self.confirmer = confirmer or Confirmer()
        self.requery = requery
        self.on_batch_start = on_batch_start
        self.on_batch_done = on_batch_done
        self.report = ApplyReport()

    @property
    def state(self) -> RunState:
        return self.report.state

    def _set_state(self, state: RunState):
        logger.debug(f"Run state: {self.report.state.value} -> {state.value}")
        self.report.state = state

    def review(self) -> List[Action]:
        """Collect confirmation for the plan's actions.

        Returns:
            Confirmed actions (empty if the run was aborted)
        """
        if self.report.state is not RunState.COMPUTED:
            raise RuntimeError(f"cannot review in state {self.report.state.value}")

        actions = list(self.plan.actions)
        if not actions:
            self._set_state(RunState.ABORTED)
            return []

        try:
            if self.review_mode is ReviewMode.NONE:
                confirmed = actions
            elif self.review_mode is ReviewMode.CONFIRM_ALL:
                confirmed = actions if self.confirmer.confirm_all(actions) else []
            else:
                confirmed = [a for a in actions if self.confirmer.confirm(a)]
        except KeyboardInterrupt:
            self.report.interrupted = True
            self.report.dropped = actions
            self._set_state(RunState.ABORTED)
            raise

        self.report.confirmed = confirmed
        accepted = set(confirmed)
        self.report.dropped = [a for a in actions if a not in accepted]

        if not confirmed:
            self._set_state(RunState.ABORTED)
            return []

        self._set_state(RunState.REVIEWED)
        return confirmed

    def _refresh(self, confirmed: List[Action]) -> List[Action]:
        fresh = set(self.requery().actions)
        kept = [a for a in confirmed if a in fresh]
        for action in confirmed:
            if action not in fresh:
                logger.info(f"Dropping {action}: no longer needed after re-query")
                self.report.dropped.append(action)
        self.report.confirmed = kept
        return kept

    def apply(self) -> ApplyReport:
        """Apply confirmed actions batch by batch."""
        if self.report.state is not RunState.REVIEWED:
            raise RuntimeError(f"cannot apply in state {self.report.state.value}")

        self._set_state(RunState.APPLYING)
        confirmed = self.report.confirmed
        if self.requery is not None and self.review_mode is not ReviewMode.NONE:
            confirmed = self._refresh(confirmed)

        batches = make_batches(confirmed)
        failed_installs = set()

        interrupted = [False]
        original_handler = None
        in_main_thread = threading.current_thread() is threading.main_thread()

        def sigint_handler(signum, frame):
            interrupted[0] = True
            logger.warning("Interrupt requested - finishing current batch")

        if in_main_thread:
            original_handler = signal.getsignal(signal.SIGINT)
            signal.signal(signal.SIGINT, sigint_handler)

        try:
            for index, (tag, kind, packages) in enumerate(batches):
                if interrupted[0]:
                    self.report.interrupted = True
                    self.report.skipped.extend(batches[index:])
                    break

                if kind is ActionKind.REMOVE and tag in failed_installs:
                    logger.warning(f"{tag}: skipping removals because installation failed")
                    self.report.skipped.append((tag, kind, packages))
                    continue

                if not self._run_batch(tag, kind, packages) and kind is ActionKind.INSTALL:
                    failed_installs.add(tag)
            else:
                if interrupted[0]:
                    self.report.interrupted = True
        finally:
            if in_main_thread:
                signal.signal(signal.SIGINT, original_handler)

        self._set_state(RunState.DONE)
        return self.report

    def _run_batch(self, tag: str, kind: ActionKind, packages: Tuple[str, ...]) -> bool:
        backend = self.backends.get(tag)
        if backend is None:
            self.report.failures.append(
                BatchFailure(tag, kind, packages, f"backend '{tag}' is not active"))
            return False

        if self.on_batch_start:
            self.on_batch_start(tag, kind, packages)

        logger.info(f"{tag}: {kind.value} {' '.join(packages)}")
        try:
            if kind is ActionKind.INSTALL:
                result = backend.install(set(packages))
            else:
                result = backend.remove(set(packages))
        except BackendMutationError as e:
            logger.error(f"{tag}: {kind.value} failed: {e.reason}")
            if e.done:
                self.report.applied.append(MutationResult(tag, kind.value, e.done))
            self.report.failures.append(
                BatchFailure(tag, kind, packages, e.reason, dict(e.failures)))
            return False
        except Exception as e:
            logger.error(f"{tag}: {kind.value} failed: {e}")
            self.report.failures.append(
                BatchFailure(tag, kind, packages, str(e) or type(e).__name__))
            return False

        self.report.applied.append(result)
        if self.on_batch_done:
            self.on_batch_done(tag, kind, packages)
        return True

    def run(self) -> ApplyReport:
        """Review then apply."""
        if self.review():
            self.apply()
        return self.report
