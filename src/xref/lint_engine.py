"""Lint engines: run plugins over the files of a provider, with caching.

SimpleLintEngine runs per-file plugins only. ProjectCheckLintEngine also
collects declarations of all files into a ProjectDatabase and, once every
file has been processed, runs project-wide checks against it.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

from xref import __version__
from xref.errors import ParseError, PluginError, StorageError
from xref.file_provider import FileProvider
from xref.hashing import cache_key, compute_hash, compute_plugin_set_hash
from xref.models import CodeDefect, ErrorDescription, Severity
from xref.parsed_file import ParsedFile
from xref.plugins.base import Capability, LintPlugin
from xref.project_db import FileDeclarations, ProjectDatabase
from xref.registry import PluginRegistry
from xref.report import Report, new_defects, sort_and_filter_report
from xref.storage import PersistentStorage

logger = logging.getLogger(__name__)

# defects that aren't attributed to a single source file
PROJECT_FILE_NAME = "(project)"

ERROR_CODE_CANT_PARSE = "xr001"
ERROR_CODE_PLUGIN_FAILED = "xr002"
ERROR_CODE_DUPLICATE_CLASS = "xr091"

ENGINE_ERRORS = {
    ERROR_CODE_CANT_PARSE: ErrorDescription(Severity.FATAL, "Can't parse file (%s)"),
    ERROR_CODE_PLUGIN_FAILED: ErrorDescription(Severity.FATAL, "Plugin %s failed"),
    ERROR_CODE_DUPLICATE_CLASS: ErrorDescription(Severity.ERROR, "Class %s is declared more than once"),
}

ProgressCallback = Callable[[int, int, str], None]


class LintEngine(ABC):
    """Shared parts of the engines: per-file linting, caching and reporting."""

    cache_domain = "lint"

    def __init__(
        self,
        registry: PluginRegistry,
        storage: PersistentStorage | None = None,
        report_level: Severity = Severity.NOTICE,
        ignored_errors: Iterable[str] = (),
        rewrite_cache: bool = False,
        progress: ProgressCallback | None = None,
    ):
        self.registry = registry
        self.storage = storage
        self.report_level = report_level
        self.ignored_errors = set(ignored_errors)
        self.rewrite_cache = rewrite_cache
        self.progress = progress
        self.plugin_set_hash = compute_plugin_set_hash(registry.get_plugins(), __version__)
        self.stats = {"total_files": 0, "parsed_files": 0, "cache_hit": 0}

    def close(self) -> None:
        """Close the storage; the engine can't cache results afterwards."""
        if self.storage is not None:
            self.storage.close()
            self.storage = None

    def __enter__(self) -> "LintEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get_report(self, file_provider: FileProvider) -> Report:
        """Lint every file of the provider.

        Returns:
            Mapping of file name to sorted defects, filtered by report level
            and ignored error codes
        """
        raw = self._collect(file_provider, None)
        return sort_and_filter_report(raw, self.report_level, self.ignored_errors)

    def get_incremental_report(
        self,
        old_provider: FileProvider,
        new_provider: FileProvider,
        changed_files: Iterable[str],
    ) -> Report:
        """Report only defects introduced between two revisions.

        Both revisions are linted restricted to changed_files; a defect of the
        new revision is dropped when the old revision of the same file has a
        defect with the same signature (see report.defect_signature).
        """
        changed = set(changed_files)
        old_raw = self._collect(old_provider, changed)
        new_raw = self._collect(new_provider, changed)
        diff = new_defects(old_raw, new_raw)
        return sort_and_filter_report(diff, self.report_level, self.ignored_errors)

    def get_error_map(self) -> dict[str, ErrorDescription]:
        """Every error code the engine and its plugins can report."""
        error_map = dict(ENGINE_ERRORS)
        for capability in (Capability.LINT, Capability.PROJECT_LINT):
            for plugin in self.registry.plugins_implementing(capability):
                error_map.update(plugin.get_error_map())
        return dict(sorted(error_map.items()))

    @abstractmethod
    def _collect(self, file_provider: FileProvider, only: set[str] | None) -> Report:
        """Raw, unsorted report; only restricts the files reported on."""
        pass

    def _report_progress(self, current: int, total: int, file_name: str) -> None:
        if self.progress is not None:
            self.progress(current, total, file_name)

    def _lint_file(
        self,
        file_provider: FileProvider,
        file_name: str,
        with_declarations: bool = False,
    ) -> tuple[list[CodeDefect], FileDeclarations | None]:
        """Defects of one file, and its declarations if asked for, from cache or computed."""
        self.stats["total_files"] += 1
        content = file_provider.get_file_content(file_name)
        key = cache_key(file_name, compute_hash(content), self.plugin_set_hash)

        if not self.rewrite_cache:
            cached = self._restore(key)
            if cached is not None:
                defects, declarations = cached
                if not with_declarations or declarations is not None:
                    self.stats["cache_hit"] += 1
                    logger.debug(f"Cache hit for {file_name}")
                    return defects, declarations

        self.stats["parsed_files"] += 1
        declarations = FileDeclarations(file_name=file_name) if with_declarations else None
        try:
            pf = self.registry.parse_file(file_name, content)
        except ParseError as e:
            logger.warning(f"Can't parse {file_name}: {e.message}")
            defects = [self._engine_defect(ERROR_CODE_CANT_PARSE, e.message, file_name, e.line_number)]
        else:
            defects = self._run_lint_plugins(pf)
            if with_declarations:
                declarations = FileDeclarations.from_parsed_file(pf)
            pf.release()

        self._save(key, defects, declarations)
        return defects, declarations

    def _run_lint_plugins(self, pf: ParsedFile) -> list[CodeDefect]:
        defects = []
        for plugin in self.registry.plugins_implementing(Capability.LINT):
            try:
                defects.extend(self._plugin_defects(plugin, pf))
            except PluginError as e:
                logger.warning(f"{e} on {pf.file_name}")
                defects.append(self._plugin_failure(e, pf.file_name))
            except Exception as e:
                # one broken plugin must not stop the other plugins or files
                logger.warning(f"Plugin {plugin.plugin_id} failed on {pf.file_name}: {e}")
                defects.append(self._plugin_failure(PluginError(plugin.plugin_id, str(e)), pf.file_name))
        return defects

    def _plugin_defects(self, plugin: LintPlugin, pf: ParsedFile) -> list[CodeDefect]:
        error_map = plugin.get_error_map()
        defects = []
        for index, error_code in plugin.get_report(pf):
            description = error_map.get(error_code)
            if description is None:
                raise PluginError(plugin.plugin_id, f"unknown error code {error_code}")
            token = pf.token_at(index)
            if token is None:
                raise PluginError(plugin.plugin_id, f"token index {index} out of range")
            defects.append(CodeDefect.from_token(
                pf,
                index,
                error_code,
                description.severity,
                description.format(token.text),
            ))
        return defects

    def _plugin_failure(self, error: PluginError, file_name: str) -> CodeDefect:
        defect = self._engine_defect(ERROR_CODE_PLUGIN_FAILED, error.plugin_id, file_name, 0)
        return CodeDefect(
            token_text=defect.token_text,
            error_code=defect.error_code,
            severity=defect.severity,
            message=f"{defect.message}: {error.reason}",
            file_name=file_name,
            line_number=0,
        )

    def _engine_defect(self, error_code: str, token_text: str, file_name: str, line_number: int) -> CodeDefect:
        description = ENGINE_ERRORS[error_code]
        return CodeDefect(
            token_text=token_text,
            error_code=error_code,
            severity=description.severity,
            message=description.format(token_text),
            file_name=file_name,
            line_number=line_number,
        )

    def _restore(self, key: str) -> tuple[list[CodeDefect], FileDeclarations | None] | None:
        if self.storage is None:
            return None
        try:
            data = self.storage.restore_data(self.cache_domain, key)
        except StorageError as e:
            logger.debug(f"Treating storage failure as cache miss: {e}")
            return None
        if data is None:
            return None
        try:
            payload = json.loads(data)
            defects = [CodeDefect.from_dict(d) for d in payload["defects"]]
            declarations = payload.get("declarations")
            if declarations is not None:
                declarations = FileDeclarations.from_dict(declarations)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring malformed cache entry {key}: {e}")
            return None
        return defects, declarations

    def _save(self, key: str, defects: list[CodeDefect], declarations: FileDeclarations | None) -> None:
        if self.storage is None:
            return
        payload = json.dumps({
            "defects": [d.to_dict() for d in defects],
            "declarations": declarations.to_dict() if declarations is not None else None,
        })
        lock_key = f"{self.cache_domain}:{key}"
        try:
            if not self.storage.get_lock(lock_key):
                logger.warning(f"Cache entry for {key} is locked, not caching")
                return
            try:
                self.storage.save_data(self.cache_domain, key, payload)
            finally:
                self.storage.release_lock(lock_key)
        except StorageError as e:
            logger.warning(f"Can't cache results for {key}: {e}")


class SimpleLintEngine(LintEngine):
    """Runs per-file lint plugins on each file independently."""

    def _collect(self, file_provider: FileProvider, only: set[str] | None) -> Report:
        files = [f for f in file_provider.get_files() if only is None or f in only]
        report = {}
        for current, file_name in enumerate(files, start=1):
            self._report_progress(current, len(files), file_name)
            defects, _ = self._lint_file(file_provider, file_name)
            report[file_name] = defects
        return report


class ProjectCheckLintEngine(LintEngine):
    """Per-file plugins plus project-wide checks over all declarations."""

    cache_domain = "project-lint"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.project_database: ProjectDatabase | None = None

    def _collect(self, file_provider: FileProvider, only: set[str] | None) -> Report:
        db = ProjectDatabase()
        report: Report = {}
        files = file_provider.get_files()
        for current, file_name in enumerate(files, start=1):
            self._report_progress(current, len(files), file_name)
            defects, declarations = self._lint_file(file_provider, file_name, with_declarations=True)
            db.add_file(declarations)
            if only is None or file_name in only:
                report[file_name] = defects

        # every file has been seen: the database is complete
        self.project_database = db
        project_report = self._project_defects(db)
        for file_name, defects in project_report.items():
            if only is None or file_name in only or file_name == PROJECT_FILE_NAME:
                report.setdefault(file_name, []).extend(defects)
        return report

    def _project_defects(self, db: ProjectDatabase) -> Report:
        report: Report = {}
        for declarations in db.get_duplicate_classes():
            first = declarations[0]
            files = ", ".join(f"{d.file_name}:{d.line_number}" for d in declarations)
            defect = self._engine_defect(ERROR_CODE_DUPLICATE_CLASS, first.name, PROJECT_FILE_NAME, 0)
            report.setdefault(PROJECT_FILE_NAME, []).append(CodeDefect(
                token_text=defect.token_text,
                error_code=defect.error_code,
                severity=defect.severity,
                message=f"{defect.message} ({files})",
                file_name=PROJECT_FILE_NAME,
                line_number=0,
            ))

        for plugin in self.registry.plugins_implementing(Capability.PROJECT_LINT):
            try:
                plugin_report = plugin.get_project_report(db)
            except Exception as e:
                logger.warning(f"Project plugin {plugin.plugin_id} failed: {e}")
                report.setdefault(PROJECT_FILE_NAME, []).append(
                    self._plugin_failure(PluginError(plugin.plugin_id, str(e)), PROJECT_FILE_NAME)
                )
                continue
            for file_name, defects in plugin_report.items():
                report.setdefault(file_name, []).extend(defects)
        return report
