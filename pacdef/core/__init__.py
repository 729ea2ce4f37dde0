"""Core modules for pacdef"""

from .errors import (
    PacdefError,
    ParseError,
    ConfigError,
    BackendQueryError,
    BackendMutationError,
    ConfigurationWarning,
)
from .groups import Group, GroupStore
from .reconcile import Action, ActionKind, Plan, Reconciler

__all__ = [
    'PacdefError', 'ParseError', 'ConfigError', 'BackendQueryError',
    'BackendMutationError', 'ConfigurationWarning',
    'Group', 'GroupStore',
    'Action', 'ActionKind', 'Plan', 'Reconciler',
]
