"""Tests for the reconciler"""

import threading

import pytest

from pacdef.core.backend import Backend, BackendRegistry, InstalledPackage, Origin
from pacdef.core.errors import BackendQueryError
from pacdef.core.groups import GroupStore, parse_group_text
from pacdef.core.memory import InMemoryBackend
from pacdef.core.reconcile import (
    Action,
    ActionKind,
    Reconciler,
    collect_snapshots,
    diff_backend,
)

KNOWN = ['apt', 'flatpak', 'pacman', 'rustup']


def make_store(*texts):
    """Build a store from (name, text) pairs."""
    return GroupStore(parse_group_text(text, name, KNOWN) for name, text in texts)


E = Origin.EXPLICIT
D = Origin.DEPENDENCY


class TestDiff:
    """Tests for diff_backend()."""

    def test_install_and_remove(self):
        installed = [InstalledPackage('git'), InstalledPackage('curl'),
                     InstalledPackage('glibc', D)]
        to_install, to_remove = diff_backend({'git', 'vim'}, installed)
        assert to_install == ['vim']
        assert to_remove == ['curl']

    def test_dependency_never_removed(self):
        installed = [InstalledPackage('libfoo', D), InstalledPackage('libbar', D)]
        assert diff_backend(set(), installed) == ([], [])

    def test_declared_dependency_not_reinstalled(self):
        # Already present, even if only as a dependency
        installed = [InstalledPackage('python', D)]
        assert diff_backend({'python'}, installed) == ([], [])

    def test_results_are_disjoint(self):
        installed = [InstalledPackage(n) for n in ('a', 'b', 'c')]
        to_install, to_remove = diff_backend({'b', 'c', 'd'}, installed)
        assert not set(to_install) & set(to_remove)
        assert to_install == ['d']
        assert to_remove == ['a']

    def test_sorted_output(self):
        to_install, _ = diff_backend({'zsh', 'bash', 'fish'}, [])
        assert to_install == ['bash', 'fish', 'zsh']


class TestReconciler:
    """Tests for Reconciler.compute() and Reconciler.plan()."""

    def test_base_group_scenario(self):
        store = make_store(("base", "[pacman]\ngit\nvim\n"))
        snapshots = {'pacman': [InstalledPackage('git'), InstalledPackage('vim'),
                                InstalledPackage('curl'), InstalledPackage('glibc', D)]}
        plan = Reconciler(store).compute(snapshots)
        assert plan.installs() == []
        assert plan.removals() == [Action.remove('pacman', 'curl')]

    def test_pacman_scenario(self):
        store = make_store(("base", "[pacman]\ngit\nvim\n"))
        pacman = InMemoryBackend('pacman', {'git': E, 'curl': E, 'glibc': D})
        plan = Reconciler(store).plan({'pacman': pacman})
        assert plan.actions == [Action.install('pacman', 'vim'), Action.remove('pacman', 'curl')]
        assert not plan.warnings
        assert not plan.query_errors

    def test_package_in_two_groups_yields_one_action(self):
        store = make_store(("a", "[apt]\nhtop\n"), ("b", "[apt]\nhtop\n"))
        apt = InMemoryBackend('apt', {})
        plan = Reconciler(store).plan({'apt': apt})
        assert plan.actions == [Action.install('apt', 'htop')]

    def test_in_sync(self):
        store = make_store(("base", "[pacman]\ngit\n"))
        pacman = InMemoryBackend('pacman', {'git': E, 'glibc': D})
        assert Reconciler(store).plan({'pacman': pacman}).is_empty()

    def test_inactive_backend_warning(self):
        store = make_store(("base", "[pacman]\ngit\n[flatpak]\norg.gimp.GIMP\n"))
        pacman = InMemoryBackend('pacman', {'git': E})
        plan = Reconciler(store).plan({'pacman': pacman})
        assert plan.is_empty()
        assert len(plan.warnings) == 1
        warning = plan.warnings[0]
        assert (warning.group, warning.backend, warning.packages) == ('base', 'flatpak', ('org.gimp.GIMP',))

    def test_no_warning_for_filtered_backend(self):
        store = make_store(("base", "[pacman]\ngit\n[flatpak]\norg.gimp.GIMP\n"))
        pacman = InMemoryBackend('pacman', {'git': E})
        plan = Reconciler(store).plan({'pacman': pacman}, active=['pacman', 'flatpak'])
        assert plan.warnings == []
        assert plan.backends == ['pacman']

    def test_no_warning_for_failed_backend(self):
        store = make_store(("base", "[apt]\nhtop\n"))
        apt = InMemoryBackend('apt', query_error="dpkg database locked")
        plan = Reconciler(store).plan({'apt': apt})
        assert plan.warnings == []
        assert [e.backend for e in plan.query_errors] == ['apt']

    def test_partial_query_failure(self):
        store = make_store(("base", "[pacman]\ngit\n[apt]\nhtop\n[flatpak]\norg.gimp.GIMP\n"))
        backends = {
            'pacman': InMemoryBackend('pacman', {}),
            'apt': InMemoryBackend('apt', query_error="boom"),
            'flatpak': InMemoryBackend('flatpak', {'org.kde.kate': E}),
        }
        plan = Reconciler(store).plan(backends)
        assert plan.backends == ['flatpak', 'pacman']
        assert [e.backend for e in plan.query_errors] == ['apt']
        assert plan.for_backend('apt') == []
        assert plan.installs('pacman') == [Action.install('pacman', 'git')]
        assert plan.by_backend()['flatpak'] == {
            ActionKind.INSTALL: ['org.gimp.GIMP'],
            ActionKind.REMOVE: ['org.kde.kate'],
        }

    def test_parallel_and_sequential_agree(self):
        store = make_store(("base", "[pacman]\ngit\n[apt]\nhtop\n"))

        def backends():
            return {
                'pacman': InMemoryBackend('pacman', {'curl': E}),
                'apt': InMemoryBackend('apt', {'nano': E, 'libc6': D}),
            }

        parallel = Reconciler(store).plan(backends(), parallel=True)
        sequential = Reconciler(store).plan(backends(), parallel=False)
        assert parallel.actions == sequential.actions

    def test_unmanaged_and_missing(self):
        store = make_store(("base", "[pacman]\ngit\nvim\n"))
        backends = {'pacman': InMemoryBackend('pacman', {'git': E, 'curl': E, 'glibc': D})}
        reconciler = Reconciler(store)
        assert reconciler.unmanaged(backends).actions == [Action.remove('pacman', 'curl')]
        assert reconciler.missing(backends).actions == [Action.install('pacman', 'vim')]

    def test_compute_is_pure(self):
        store = make_store(("base", "[pacman]\ngit\n"))
        snapshots = {'pacman': [InstalledPackage('curl')]}
        reconciler = Reconciler(store)
        assert reconciler.compute(snapshots).actions == reconciler.compute(snapshots).actions

    def test_to_dict(self):
        store = make_store(("base", "[pacman]\nvim\n[flatpak]\norg.gimp.GIMP\n"))
        plan = Reconciler(store).plan({'pacman': InMemoryBackend('pacman', {'curl': E})})
        data = plan.to_dict()
        assert data['backends'] == {'pacman': {'install': ['vim'], 'remove': ['curl']}}
        assert data['warnings'] == [
            {'group': 'base', 'backend': 'flatpak', 'packages': ['org.gimp.GIMP']}
        ]
        assert data['query_errors'] == []

    def test_filtered(self):
        store = make_store(("base", "[pacman]\nvim\n"))
        plan = Reconciler(store).plan({'pacman': InMemoryBackend('pacman', {'curl': E})})
        only_installs = plan.filtered([ActionKind.INSTALL])
        assert only_installs.actions == [Action.install('pacman', 'vim')]
        assert len(plan.actions) == 2


class _Crashing(Backend):
    tag = "crashy"

    def installed(self):
        raise RuntimeError("segfault in libalpm")

    def install(self, packages):
        raise NotImplementedError

    def remove(self, packages):
        raise NotImplementedError


class _Slow(InMemoryBackend):
    """Backend whose query blocks until released."""

    def __init__(self, tag, release: threading.Event, **kwargs):
        super().__init__(tag, **kwargs)
        self.release = release

    def installed(self):
        assert self.release.wait(5)
        return super().installed()


class TestSnapshots:
    """Tests for collect_snapshots()."""

    def test_unexpected_exception_becomes_query_error(self):
        snapshots, errors = collect_snapshots({'crashy': _Crashing(), 'apt': InMemoryBackend('apt')})
        assert list(snapshots) == ['apt']
        assert len(errors) == 1
        assert isinstance(errors[0], BackendQueryError)
        assert "segfault" in errors[0].reason

    def test_order_independent_of_completion(self):
        release = threading.Event()
        slow = _Slow('apt', release, packages={'htop': E})

        class Releaser(InMemoryBackend):
            def installed(self):
                release.set()
                return super().installed()

        fast = Releaser('pacman', {'git': E})
        snapshots, errors = collect_snapshots({'pacman': fast, 'apt': slow}, parallel=True)
        assert errors == []
        assert list(snapshots) == ['apt', 'pacman']


class TestRegistry:
    """Tests for BackendRegistry."""

    def test_known_and_active(self):
        registry = BackendRegistry([
            InMemoryBackend('pacman'),
            InMemoryBackend('apt', available=False),
        ])
        assert registry.known_tags() == ['apt', 'pacman']
        assert list(registry.active()) == ['pacman']
        assert list(registry.active(only=['apt'])) == []

    def test_duplicate_tag(self):
        with pytest.raises(ValueError):
            BackendRegistry([InMemoryBackend('pacman'), InMemoryBackend('pacman')])

    def test_active_honours_config(self, tmp_path):
        from pacdef.core.config import Config

        registry = BackendRegistry([InMemoryBackend('pacman'), InMemoryBackend('flatpak')])
        config = Config(group_dir=tmp_path, disabled_backends=('flatpak',))
        assert list(registry.active(config)) == ['pacman']
        config = Config(group_dir=tmp_path, enabled_backends=('flatpak',))
        assert list(registry.active(config)) == ['flatpak']
