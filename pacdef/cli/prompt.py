"""Interactive confirmation on the terminal."""

from typing import List

from . import colors
from ..core.apply import Confirmer
from ..core.reconcile import Action, ActionKind


def ask(question: str, default: bool = True) -> bool:
    """Ask a yes/no question; Enter picks the default, EOF answers no."""
    hint = "[Y/n]" if default else "[y/N]"
    try:
        response = input(f"{question} {hint} ").strip().lower()
    except EOFError:
        print()
        return False
    if not response:
        return default
    return response in ('y', 'yes')


class InteractivePrompt(Confirmer):
    """Confirmer reading answers from stdin."""

    def confirm(self, action: Action) -> bool:
        if action.kind is ActionKind.INSTALL:
            what = f"install {colors.pkg_install(action.package)}"
        else:
            what = f"remove {colors.pkg_remove(action.package)}"
        # Removals need an explicit yes
        return ask(f"  {colors.backend(action.backend)} {what}?",
                   default=action.kind is ActionKind.INSTALL)

    def confirm_all(self, actions: List[Action]) -> bool:
        return ask(f"\nApply these {len(actions)} change(s)?")
