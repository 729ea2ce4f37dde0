"""Tests for the review/apply controller"""

import signal

import pytest

from pacdef.core.apply import (
    ReviewApplyController,
    RunState,
    ScriptedConfirmer,
    make_batches,
)
from pacdef.core.backend import MutationResult, Origin
from pacdef.core.config import ReviewMode
from pacdef.core.errors import BackendMutationError
from pacdef.core.groups import GroupStore, parse_group_text
from pacdef.core.memory import InMemoryBackend
from pacdef.core.reconcile import Action, ActionKind, Reconciler

KNOWN = ['apt', 'flatpak', 'pacman']

E = Origin.EXPLICIT
D = Origin.DEPENDENCY


def make_store(*texts):
    return GroupStore(parse_group_text(text, name, KNOWN) for name, text in texts)


@pytest.fixture
def system():
    """Two backends out of sync with a base group."""
    store = make_store(("base", "[pacman]\ngit\nvim\n[apt]\nhtop\n"))
    backends = {
        'pacman': InMemoryBackend('pacman', {'git': E, 'curl': E, 'glibc': D}),
        'apt': InMemoryBackend('apt', {'nano': E, 'libc6': D}),
    }
    return Reconciler(store), backends


class TestBatches:
    """Tests for make_batches()."""

    def test_install_before_remove_per_backend(self):
        actions = [
            Action.remove('pacman', 'curl'),
            Action.install('pacman', 'vim'),
            Action.install('apt', 'htop'),
            Action.install('pacman', 'emacs'),
        ]
        assert make_batches(actions) == [
            ('apt', ActionKind.INSTALL, ('htop',)),
            ('pacman', ActionKind.INSTALL, ('emacs', 'vim')),
            ('pacman', ActionKind.REMOVE, ('curl',)),
        ]

    def test_empty(self):
        assert make_batches([]) == []


class TestReview:
    """Tests for review modes and state transitions."""

    def test_no_review_applies_everything(self, system):
        reconciler, backends = system
        plan = reconciler.plan(backends)
        controller = ReviewApplyController(plan, backends, ReviewMode.NONE)
        report = controller.run()
        assert report.state is RunState.DONE
        assert report.success
        assert backends['pacman'].names() == {'git', 'vim', 'glibc'}
        assert backends['apt'].names() == {'htop', 'libc6'}

    def test_confirm_all_declined(self, system):
        reconciler, backends = system
        confirmer = ScriptedConfirmer(accept_all=False)
        controller = ReviewApplyController(reconciler.plan(backends), backends,
                                           ReviewMode.CONFIRM_ALL, confirmer)
        report = controller.run()
        assert report.state is RunState.ABORTED
        assert confirmer.asked_all == 1
        assert backends['pacman'].calls == []
        assert backends['apt'].calls == []
        assert len(report.dropped) == 4

    def test_per_action_deselect(self, system):
        reconciler, backends = system
        # Keep curl: decline its removal
        confirmer = ScriptedConfirmer({('pacman', 'curl'): False})
        controller = ReviewApplyController(reconciler.plan(backends), backends,
                                           ReviewMode.PER_ACTION, confirmer)
        report = controller.run()
        assert len(confirmer.asked) == 4
        assert report.dropped == [Action.remove('pacman', 'curl')]
        assert 'curl' in backends['pacman'].names()
        assert 'vim' in backends['pacman'].names()
        assert backends['pacman'].calls == [('install', ('vim',))]

    def test_per_action_everything_declined(self, system):
        reconciler, backends = system
        confirmer = ScriptedConfirmer(default=False)
        controller = ReviewApplyController(reconciler.plan(backends), backends,
                                           ReviewMode.PER_ACTION, confirmer)
        assert controller.review() == []
        assert controller.state is RunState.ABORTED

    def test_empty_plan_aborts(self):
        store = make_store(("base", "[pacman]\ngit\n"))
        backends = {'pacman': InMemoryBackend('pacman', {'git': E})}
        controller = ReviewApplyController(Reconciler(store).plan(backends), backends)
        report = controller.run()
        assert report.state is RunState.ABORTED
        assert backends['pacman'].calls == []

    def test_state_transitions(self, system):
        reconciler, backends = system
        controller = ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE)
        assert controller.state is RunState.COMPUTED
        controller.review()
        assert controller.state is RunState.REVIEWED
        controller.apply()
        assert controller.state is RunState.DONE

    def test_apply_requires_review(self, system):
        reconciler, backends = system
        controller = ReviewApplyController(reconciler.plan(backends), backends)
        with pytest.raises(RuntimeError):
            controller.apply()

    def test_review_twice(self, system):
        reconciler, backends = system
        controller = ReviewApplyController(reconciler.plan(backends), backends)
        controller.review()
        with pytest.raises(RuntimeError):
            controller.review()

    def test_interrupt_during_review(self, system):
        reconciler, backends = system

        class Interrupting(ScriptedConfirmer):
            def confirm(self, action):
                raise KeyboardInterrupt

        controller = ReviewApplyController(reconciler.plan(backends), backends,
                                           ReviewMode.PER_ACTION, Interrupting())
        with pytest.raises(KeyboardInterrupt):
            controller.review()
        assert controller.state is RunState.ABORTED
        assert controller.report.interrupted
        assert backends['pacman'].calls == []


class TestApply:
    """Tests for batch execution and failure isolation."""

    def test_convergence_is_idempotent(self, system):
        reconciler, backends = system
        ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()

        second = reconciler.plan(backends)
        assert second.is_empty()

        calls_before = {tag: list(b.calls) for tag, b in backends.items()}
        report = ReviewApplyController(second, backends, ReviewMode.NONE).run()
        assert report.state is RunState.ABORTED
        assert {tag: b.calls for tag, b in backends.items()} == calls_before

    def test_one_batch_per_backend_and_kind(self, system):
        reconciler, backends = system
        ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()
        assert backends['pacman'].calls == [('install', ('vim',)), ('remove', ('curl',))]
        assert backends['apt'].calls == [('install', ('htop',)), ('remove', ('nano',))]

    def test_failure_does_not_stop_other_backends(self, system):
        reconciler, backends = system
        backends['apt'].fail_packages = {'htop': "E: Unable to locate package htop"}
        report = ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()

        assert not report.success
        assert report.state is RunState.DONE
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert (failure.backend, failure.kind) == ('apt', ActionKind.INSTALL)
        assert failure.details == {'htop': "E: Unable to locate package htop"}
        # pacman ran to completion
        assert backends['pacman'].names() == {'git', 'vim', 'glibc'}

    def test_remove_skipped_after_failed_install(self, system):
        reconciler, backends = system
        backends['apt'].fail_packages = {'htop': "not found"}
        report = ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()
        assert report.skipped == [('apt', ActionKind.REMOVE, ('nano',))]
        assert 'nano' in backends['apt'].names()

    def test_unexpected_exception_is_a_failure(self, system):
        reconciler, backends = system

        class Broken(InMemoryBackend):
            def install(self, packages):
                raise OSError("disk full")

        backends['apt'] = Broken('apt', {'nano': E})
        report = ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()
        assert [f.backend for f in report.failures] == ['apt']
        assert report.failures[0].reason == "disk full"

    def test_failures_for(self, system):
        reconciler, backends = system
        backends['pacman'].fail_packages = {'curl': "target not found"}
        report = ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()
        assert [f.kind for f in report.failures_for('pacman')] == [ActionKind.REMOVE]
        assert report.failures_for('apt') == []

    def test_batch_callbacks(self, system):
        reconciler, backends = system
        started, done = [], []
        controller = ReviewApplyController(
            reconciler.plan(backends), backends, ReviewMode.NONE,
            on_batch_start=lambda *batch: started.append(batch),
            on_batch_done=lambda *batch: done.append(batch),
        )
        controller.run()
        assert [b[0] for b in started] == ['apt', 'apt', 'pacman', 'pacman']
        assert started == done

    def test_interrupt_finishes_running_batch(self, system):
        reconciler, backends = system

        class CtrlC(InMemoryBackend):
            def install(self, packages):
                signal.raise_signal(signal.SIGINT)
                return super().install(packages)

        backends['apt'] = CtrlC('apt', {'nano': E, 'libc6': D})
        handler_before = signal.getsignal(signal.SIGINT)
        report = ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()

        assert report.interrupted
        assert not report.success
        assert report.state is RunState.DONE
        assert 'htop' in backends['apt'].names()
        assert report.applied == [MutationResult('apt', 'install', ('htop',))]
        assert report.skipped == [
            ('apt', ActionKind.REMOVE, ('nano',)),
            ('pacman', ActionKind.INSTALL, ('vim',)),
            ('pacman', ActionKind.REMOVE, ('curl',)),
        ]
        assert backends['pacman'].calls == []
        assert signal.getsignal(signal.SIGINT) is handler_before

    def test_interrupt_during_last_batch(self, system):
        reconciler, backends = system

        class CtrlC(InMemoryBackend):
            def remove(self, packages):
                signal.raise_signal(signal.SIGINT)
                return super().remove(packages)

        backends['pacman'] = CtrlC('pacman', {'git': E, 'curl': E, 'glibc': D})
        report = ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()
        assert report.interrupted
        assert report.skipped == []
        assert 'curl' not in backends['pacman'].names()

    def test_partial_progress_of_failed_batch(self):
        class OneByOne(InMemoryBackend):
            def install(self, packages):
                super().install(['htop'])
                raise BackendMutationError(
                    self.tag, 'install', {'mc': "E: Unable to locate package mc"}, done=('htop',))

        reconciler = Reconciler(make_store(("base", "[apt]\nhtop\nmc\n")))
        backends = {'apt': OneByOne('apt', {})}
        report = ReviewApplyController(reconciler.plan(backends), backends, ReviewMode.NONE).run()
        assert report.applied == [MutationResult('apt', 'install', ('htop',))]
        assert report.failures[0].packages == ('htop', 'mc')
        assert report.failures[0].details == {'mc': "E: Unable to locate package mc"}


class TestRequery:
    """Tests for re-querying between review and apply."""

    def test_drops_actions_no_longer_needed(self, system):
        reconciler, backends = system
        plan = reconciler.plan(backends)

        def requery():
            # Someone installed vim by hand during the review
            backends['pacman'].install(['vim'])
            backends['pacman'].calls.clear()
            return reconciler.plan(backends)

        controller = ReviewApplyController(plan, backends, ReviewMode.CONFIRM_ALL,
                                           ScriptedConfirmer(), requery=requery)
        report = controller.run()
        assert Action.install('pacman', 'vim') in report.dropped
        assert backends['pacman'].calls == [('remove', ('curl',))]

    def test_requery_never_adds_actions(self, system):
        reconciler, backends = system
        plan = reconciler.plan(backends).filtered([ActionKind.INSTALL])

        controller = ReviewApplyController(plan, backends, ReviewMode.CONFIRM_ALL,
                                           ScriptedConfirmer(), requery=lambda: reconciler.plan(backends))
        report = controller.run()
        assert all(a.kind is ActionKind.INSTALL for a in report.confirmed)
        assert 'curl' in backends['pacman'].names()
