"""Action mixins composed into manager types.

Each mixin contributes one public entry point.  The entry point names its
action explicitly when it starts the pipeline, then runs that action's
stages in a fixed order; the shared stages live on ``Manager``.

Every entry point accepts an optional ``extension(manager)`` callable.  It
runs at the action's extension point and may replace or mutate
``manager.target``.  For ``create``, ``update`` and ``delete`` it runs inside
the same SAVEPOINT unit as the write.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from manageable.errors import PersistenceFailed
from manageable.models.enums import Action

if TYPE_CHECKING:
    from sqlalchemy import Select

    from manageable.managers.base import Manager
    from manageable.models.options import ActionOptions

    Extension = Callable[[Manager], Any]
    Options = ActionOptions | Mapping[str, Any] | None


class ListAction:
    def list(self: Manager, options: Options = None, extension: Extension | None = None) -> Select:
        """Return the authorized, searched, ordered and paginated query for the entity."""
        self._begin(Action.LIST, options=options)
        self.target = self._authorized_scope()
        self._authorize(self.entity)
        if not self._search():
            self._order()
        self._scopes()
        self._paginate()
        self._includes()
        self._select()
        self._distinct()
        self._run_extension(extension)
        return self.target


class ReadAction:
    def read(self: Manager, id: Any, options: Options = None, extension: Extension | None = None) -> Any:
        """Return one record, checking ``read`` permission on it."""
        self._begin(Action.READ, options=options)
        return self._find_for_display(id, extension)


class NewAction:
    def new(
        self: Manager,
        attributes: Mapping[str, Any] | Any = None,
        extension: Extension | None = None,
    ) -> Any:
        """Return an unsaved record built from the attributes and default values."""
        self._begin(Action.NEW, attributes=attributes)
        self.target = self._build_unsaved()
        self._authorize(self.target)
        self._run_extension(extension)
        return self.target


class CreateAction:
    def create(
        self: Manager,
        attributes: Mapping[str, Any] | Any,
        extension: Extension | None = None,
    ) -> bool:
        """Build, authorize and save a record.

        Returns ``False`` when the record is invalid or the write fails; the
        unit is rolled back and the record's errors stay on ``target``.
        """
        self._begin(Action.CREATE, attributes=attributes)
        self.target = self._build_unsaved()
        self._authorize(self.target)
        try:
            with self.backend.atomic(commit=self._owns_transaction):
                self._run_extension(extension)
                self.backend.save_or_fail(self.target)
        except PersistenceFailed as exc:
            logger.debug("{}.create failed: {}", type(self).__name__, exc)
            return False
        return True


class EditAction:
    def edit(self: Manager, id: Any, options: Options = None, extension: Extension | None = None) -> Any:
        """Return one record for editing, checking ``edit`` permission on it."""
        self._begin(Action.EDIT, options=options)
        return self._find_for_display(id, extension)


class UpdateAction:
    def update(
        self: Manager,
        id: Any,
        attributes: Mapping[str, Any] | Any,
        options: Options = None,
        extension: Extension | None = None,
    ) -> bool:
        """Assign the attributes to an existing record and save it.

        Assignment, extension and save share one unit, so a refused save also
        reverts the assigned values.  Returns ``False`` when the save fails.
        """
        self._begin(Action.UPDATE, attributes=attributes, options=options)
        self.target = self._base_scope()
        self._includes()
        self.target = self.backend.find_by_id(self.target, id)
        self._authorize(self.target)
        try:
            with self.backend.atomic(commit=self._owns_transaction):
                self.backend.assign_attributes(self.target, self.attributes)
                self._run_extension(extension)
                self.backend.save_or_fail(self.target)
        except PersistenceFailed as exc:
            logger.debug("{}.update failed: {}", type(self).__name__, exc)
            return False
        return True


class DeleteAction:
    def delete(self: Manager, id: Any, options: Options = None, extension: Extension | None = None) -> bool:
        """Destroy a record.  Returns ``False`` when the backend refuses, rolling back the unit."""
        self._begin(Action.DELETE, options=options)
        self.target = self._base_scope()
        self._includes()
        self.target = self.backend.find_by_id(self.target, id)
        self._authorize(self.target)
        try:
            with self.backend.atomic(commit=self._owns_transaction):
                self._run_extension(extension)
                self.backend.destroy_or_fail(self.target)
        except PersistenceFailed as exc:
            logger.debug("{}.delete failed: {}", type(self).__name__, exc)
            return False
        return True


ACTION_MIXINS: dict[Action, type] = {
    Action.LIST: ListAction,
    Action.READ: ReadAction,
    Action.NEW: NewAction,
    Action.CREATE: CreateAction,
    Action.EDIT: EditAction,
    Action.UPDATE: UpdateAction,
    Action.DELETE: DeleteAction,
}
