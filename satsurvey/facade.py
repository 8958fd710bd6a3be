"""Persistence façade — the single entry point for every satellite mutation.

The façade owns the session state (in-memory collection, edit token, view
settings) and one backend chosen at construction. It guarantees:

* at most one save (create/update/delete) in flight; a second request is
  rejected, never queued;
* at most one import in flight, and at most one reload;
* the collection is swapped only after the backend chain for a call has
  fully succeeded;
* no exception escapes: every call returns an :class:`OperationResult` and
  produces exactly one presenter notification (cancelled deletes produce none).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping

from satsurvey.config import SurveyConfig
from satsurvey.csv_io import drafts_from_text, export_csv, export_filename
from satsurvey.db import get_db, init_db
from satsurvey.errors import (
    BackendError,
    BusyError,
    NotFoundError,
    StorageError,
    SurveyError,
    ValidationError,
)
from satsurvey.presentation import (
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_SUCCESS,
    LEVEL_WARNING,
    LoggingPresenter,
    Presenter,
)
from satsurvey.records import SatelliteDraft, SatelliteRecord, SensorRecord
from satsurvey.storage.backends import SatelliteBackend, WriteOutcome, merge_update, without
from satsurvey.storage.local import LocalBackend, LocalStore
from satsurvey.storage.sharepoint import SharePointBackend, SharePointClient
from satsurvey.validation import FieldError, validate
from satsurvey.view import SurveyView, ViewSnapshot

logger = logging.getLogger(__name__)

KIND_OK = "ok"
KIND_VALIDATION = "validation_failed"
KIND_BACKEND = "backend_unavailable"
KIND_NOT_FOUND = "not_found"
KIND_BUSY = "busy"
KIND_CANCELLED = "cancelled"
KIND_EMPTY = "empty"
KIND_ERROR = "error"

Confirm = Callable[[str], bool]


@dataclass
class OperationResult:
    """Uniform outcome of a façade call."""
    success: bool
    kind: str = KIND_OK
    message: str = ""
    level: str = LEVEL_SUCCESS
    record: SatelliteRecord | None = None
    errors: list[FieldError] = field(default_factory=list)
    imported: int = 0
    skipped: int = 0
    failures: list[str] = field(default_factory=list)
    filename: str = ""
    content: str = ""


@dataclass
class SurveyState:
    """Session context: the authoritative collection plus edit/flight flags."""
    satellites: list[SatelliteRecord] = field(default_factory=list)
    sensors: list[SensorRecord] = field(default_factory=list)
    editing_id: int | None = None
    field_errors: list[FieldError] = field(default_factory=list)
    saving: bool = False
    importing: bool = False
    loading: bool = False

    def find(self, record_id: int) -> SatelliteRecord | None:
        return next((r for r in self.satellites if r.id == record_id), None)


def build_backend(config: SurveyConfig) -> SatelliteBackend:
    """SharePoint when a site URL is configured, the local store otherwise."""
    if config.remote:
        logger.info("SharePoint mode: %s (list %s)", config.site_url, config.satellite_list)
        client = SharePointClient(
            config.site_url,
            timeout=config.api_timeout,
            auth_token=config.auth_token,
        )
        return SharePointBackend(
            client,
            satellite_list=config.satellite_list,
            sensor_list=config.sensor_list,
            page_size=config.page_size,
        )
    logger.info("Local storage mode: %s", config.db_path)
    Path(config.data_dir).mkdir(parents=True, exist_ok=True)
    init_db(config.db_path)
    store = LocalStore(get_db(), quota_bytes=config.local_quota_bytes)
    return LocalBackend(store, seed_sample=config.seed_sample)


def _decline(prompt: str) -> bool:
    logger.warning("No confirmation prompt configured; declining: %s", prompt)
    return False


def _as_draft(data: SatelliteDraft | Mapping[str, Any]) -> SatelliteDraft:
    if isinstance(data, SatelliteDraft):
        return data
    return SatelliteDraft.from_mapping(data)


class SurveyFacade:
    def __init__(
        self,
        backend: SatelliteBackend,
        *,
        presenter: Presenter | None = None,
        confirm: Confirm | None = None,
        view: SurveyView | None = None,
        state: SurveyState | None = None,
    ) -> None:
        self.backend = backend
        self.presenter: Presenter = presenter or LoggingPresenter()
        self.view = view or SurveyView()
        self.state = state or SurveyState()
        self._confirm = confirm or _decline

    @classmethod
    def from_config(
        cls,
        config: SurveyConfig,
        *,
        presenter: Presenter | None = None,
        confirm: Confirm | None = None,
    ) -> SurveyFacade:
        return cls(build_backend(config), presenter=presenter, confirm=confirm)

    @property
    def backend_name(self) -> str:
        return self.backend.name

    @property
    def satellites(self) -> list[SatelliteRecord]:
        """Read-only copy of the current collection."""
        return list(self.state.satellites)

    @property
    def sensors(self) -> list[SensorRecord]:
        return list(self.state.sensors)

    async def aclose(self) -> None:
        await self.backend.aclose()

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    async def start(self) -> OperationResult:
        """Load satellites, then sensors (sensor failures are non-fatal)."""
        result = await self.reload()
        try:
            self.state.sensors = await self.backend.load_sensors()
        except SurveyError as exc:
            logger.error("Error loading sensors: %s", exc)
            self.state.sensors = []
        self._render()
        return result

    async def reload(self) -> OperationResult:
        return await self._exclusive("loading", "Load", self._reload)

    async def _reload(self) -> OperationResult:
        records = await self.backend.load()
        self._commit(records)
        return OperationResult(True, message=f"Loaded {len(records)} satellites")

    # ------------------------------------------------------------------ #
    # Edit token
    # ------------------------------------------------------------------ #

    def begin_add(self) -> None:
        self.state.editing_id = None
        self._clear_field_errors()

    def begin_edit(self, record_id: int) -> OperationResult:
        self._clear_field_errors()
        record = self.state.find(record_id)
        if record is None:
            return self._finish(self._failure(NotFoundError(record_id)))
        self.state.editing_id = record_id
        return OperationResult(True, message=f"Editing {record.title}", level=LEVEL_INFO, record=record)

    def cancel_edit(self) -> None:
        self.state.editing_id = None
        self._clear_field_errors()

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def save(self, data: SatelliteDraft | Mapping[str, Any]) -> OperationResult:
        """Form submit: update the record in edit, or create a new one."""
        if self.state.editing_id is not None:
            return await self.update(self.state.editing_id, data)
        return await self.create(data)

    async def create(self, data: SatelliteDraft | Mapping[str, Any]) -> OperationResult:
        draft = _as_draft(data)
        return await self._exclusive("saving", "Save", lambda: self._create(draft))

    async def update(
        self, record_id: int, data: SatelliteDraft | Mapping[str, Any]
    ) -> OperationResult:
        draft = _as_draft(data)
        return await self._exclusive("saving", "Save", lambda: self._update(record_id, draft))

    async def delete(self, record_id: int, confirm: Confirm | None = None) -> OperationResult:
        return await self._exclusive("saving", "Delete", lambda: self._delete(record_id, confirm))

    async def _create(self, draft: SatelliteDraft) -> OperationResult:
        checked = self._validated(draft)
        outcome = await self.backend.create(self.state.satellites, checked)
        self._commit(outcome.records)
        self.state.editing_id = None
        return self._written(outcome, "added")

    async def _update(self, record_id: int, draft: SatelliteDraft) -> OperationResult:
        if self.state.find(record_id) is None:
            raise NotFoundError(record_id)
        checked = self._validated(draft)
        snapshot = self.state.satellites
        outcome = await self.backend.update(snapshot, record_id, checked)
        if self.state.satellites is not snapshot:
            # A reload or import swapped the collection while we were waiting.
            outcome.records, outcome.record = merge_update(self.state.satellites, record_id, checked)
            if outcome.record is None:
                raise NotFoundError(record_id)
        self._commit(outcome.records)
        self.state.editing_id = None
        return self._written(outcome, "updated")

    async def _delete(self, record_id: int, confirm: Confirm | None) -> OperationResult:
        record = self.state.find(record_id)
        if record is None:
            raise NotFoundError(record_id)
        approve = confirm or self._confirm
        if not approve(f"Delete satellite '{record.title}'?"):
            logger.info("Delete of %d cancelled", record_id)
            return OperationResult(False, KIND_CANCELLED, "Delete cancelled", LEVEL_INFO)
        snapshot = self.state.satellites
        outcome = await self.backend.delete(snapshot, record_id)
        if self.state.satellites is not snapshot:
            outcome.records = without(self.state.satellites, record_id)
        self._commit(outcome.records)
        if self.state.editing_id == record_id:
            self.state.editing_id = None
        outcome.record = record
        return self._written(outcome, "deleted")

    # ------------------------------------------------------------------ #
    # Import / export
    # ------------------------------------------------------------------ #

    async def import_text(self, text: str) -> OperationResult:
        return await self._exclusive("importing", "Import", lambda: self._import_text(text))

    async def import_file(self, path: str | Path) -> OperationResult:
        """Read *path* to completion off the event loop, then import it."""
        return await self._exclusive("importing", "Import", lambda: self._import_file(Path(path)))

    async def bulk_import(self, drafts: list[SatelliteDraft]) -> OperationResult:
        return await self._exclusive("importing", "Import", lambda: self._bulk_import(drafts))

    async def _import_file(self, path: Path) -> OperationResult:
        logger.info("CSV file selected: %s", path)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Could not read %s: %s", path, exc)
            return OperationResult(False, KIND_ERROR, f"Could not read {path.name}: {exc}", LEVEL_ERROR)
        return await self._import_text(text)

    async def _import_text(self, text: str) -> OperationResult:
        drafts, skipped = drafts_from_text(text)
        result = await self._bulk_import(drafts)
        result.skipped = skipped
        return result

    async def _bulk_import(self, drafts: list[SatelliteDraft]) -> OperationResult:
        if not drafts:
            return OperationResult(True, message="Imported 0 satellites", level=LEVEL_WARNING)
        logger.info("Starting import of %d satellites (%s)", len(drafts), self.backend.name)
        outcome = await self.backend.bulk_import(self.state.satellites, drafts)
        if outcome.records is not None:
            self._commit(outcome.records)

        message = f"Imported {outcome.imported} satellites"
        level = LEVEL_SUCCESS
        if outcome.failures:
            message += f"; {len(outcome.failures)} failed"
            level = LEVEL_WARNING
        if outcome.warning:
            message += f". {outcome.warning}"
            level = LEVEL_WARNING
        logger.info("Import complete: %d succeeded, %d failed", outcome.imported, len(outcome.failures))
        return OperationResult(
            True,
            message=message,
            level=level,
            imported=outcome.imported,
            failures=list(outcome.failures),
        )

    def export(self, today: date | None = None) -> OperationResult:
        """Serialize the full collection to CSV."""
        if not self.state.satellites:
            return self._finish(OperationResult(False, KIND_EMPTY, "No data to export", LEVEL_ERROR))
        content = export_csv(self.state.satellites)
        logger.info("CSV exported: %d rows", len(self.state.satellites))
        return self._finish(
            OperationResult(
                True,
                message="CSV exported!",
                filename=export_filename(today),
                content=content,
            ),
            render=False,
        )

    # ------------------------------------------------------------------ #
    # View
    # ------------------------------------------------------------------ #

    def project(self) -> list[SatelliteRecord]:
        """Visible satellites under the current search, filter and sort."""
        return self.view.project(self.state.satellites)

    def snapshot(self) -> ViewSnapshot:
        return self.view.snapshot(self.state.satellites, self.state.sensors)

    def set_search(self, term: str) -> ViewSnapshot:
        self.view.set_search(term)
        return self._render()

    def set_filter(self, name: str) -> ViewSnapshot:
        self.view.set_filter(name)
        return self._render()

    def toggle_sort(self, column: str) -> ViewSnapshot:
        self.view.toggle_sort(column)
        return self._render()

    def select(self, record_id: int) -> SatelliteRecord | None:
        record = self.state.find(record_id)
        if record is not None:
            self.view.selected_id = record_id
            self._render()
        return record

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _exclusive(
        self,
        flag: str,
        action: str,
        operation: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        """Run *operation* under the single-flight *flag* and convert errors."""
        if getattr(self.state, flag):
            return self._finish(
                self._failure(BusyError(f"{action} already in progress")), render=False
            )
        setattr(self.state, flag, True)
        try:
            result = await operation()
        except SurveyError as exc:
            result = self._failure(exc)
        except Exception as exc:
            logger.exception("%s failed unexpectedly", action)
            result = OperationResult(False, KIND_ERROR, f"Error: {exc}", LEVEL_ERROR)
        finally:
            setattr(self.state, flag, False)
        return self._finish(result)

    def _failure(self, exc: SurveyError) -> OperationResult:
        if isinstance(exc, ValidationError):
            logger.warning("Validation failed: %s", exc)
            return OperationResult(
                False, KIND_VALIDATION, "Fix validation errors", LEVEL_ERROR, errors=exc.errors
            )
        if isinstance(exc, BusyError):
            logger.warning("%s; request rejected", exc)
            return OperationResult(False, KIND_BUSY, str(exc), LEVEL_WARNING)
        if isinstance(exc, NotFoundError):
            logger.error("Satellite %d not found", exc.record_id)
            return OperationResult(False, KIND_NOT_FOUND, str(exc), LEVEL_ERROR)
        if isinstance(exc, (BackendError, StorageError)):
            logger.error("%s error: %s", self.backend.name, exc)
            return OperationResult(False, KIND_BACKEND, f"Error: {exc}", LEVEL_ERROR)
        logger.error("Survey error: %s", exc)
        return OperationResult(False, KIND_ERROR, f"Error: {exc}", LEVEL_ERROR)

    def _validated(self, draft: SatelliteDraft) -> SatelliteDraft:
        self._clear_field_errors()
        result = validate(draft)
        if not result.valid or result.draft is None:
            raise ValidationError(result.errors)
        return result.draft

    def _written(self, outcome: WriteOutcome, action: str) -> OperationResult:
        logger.info("Satellite %s", action)
        if outcome.warning:
            return OperationResult(
                True,
                message=f"Satellite {action}. {outcome.warning}",
                level=LEVEL_WARNING,
                record=outcome.record,
            )
        return OperationResult(True, message=f"Satellite {action}!", record=outcome.record)

    def _commit(self, records: list[SatelliteRecord]) -> None:
        seen: set[int] = set()
        unique: list[SatelliteRecord] = []
        for record in records:
            if record.id in seen:
                logger.warning("Ignoring duplicate satellite id %d", record.id)
                continue
            seen.add(record.id)
            unique.append(record)
        self.state.satellites = unique
        if self.view.selected_id is not None and self.view.selected_id not in seen:
            self.view.selected_id = None

    def _clear_field_errors(self) -> None:
        if self.state.field_errors:
            self.state.field_errors = []
        self.presenter.clear_field_errors()

    def _finish(self, result: OperationResult, *, render: bool = True) -> OperationResult:
        if result.kind == KIND_VALIDATION:
            self.state.field_errors = list(result.errors)
            self.presenter.show_field_errors(result.errors)
        if result.kind != KIND_CANCELLED:
            self.presenter.notify(result.message, result.level)
        if render and result.success:
            self._render()
        return result

    def _render(self) -> ViewSnapshot:
        snapshot = self.snapshot()
        self.presenter.render(snapshot)
        return snapshot
