"""Manager types: the action pipeline engine and its action mixins."""

from manageable.managers.actions import (
    ACTION_MIXINS,
    CreateAction,
    DeleteAction,
    EditAction,
    ListAction,
    NewAction,
    ReadAction,
    UpdateAction,
)
from manageable.managers.base import Manager, ManagerType, manager_actions

__all__ = [
    "ACTION_MIXINS",
    "CreateAction",
    "DeleteAction",
    "EditAction",
    "ListAction",
    "Manager",
    "ManagerType",
    "NewAction",
    "ReadAction",
    "UpdateAction",
    "manager_actions",
]
