"""
Client-side workspace: local mirrors of the notebook tables with optimistic
mutations against the HTTP API.
"""
from radnotebook.workspace.client import NotebookClient
from radnotebook.workspace.debounce import DebouncedEdit
from radnotebook.workspace.gateway import GatewayError, PersistenceGateway
from radnotebook.workspace.mirror import OptimisticCollection, is_placeholder
from radnotebook.workspace.notifications import Notification, Notifier
from radnotebook.workspace.store import WorkspaceStore

__all__ = [
    'DebouncedEdit',
    'GatewayError',
    'NotebookClient',
    'Notification',
    'Notifier',
    'OptimisticCollection',
    'PersistenceGateway',
    'WorkspaceStore',
    'is_placeholder',
]
