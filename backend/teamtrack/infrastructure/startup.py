"""
Startup validation checks for the TeamTrack API.

Run from the app lifespan before any request is served. Non-critical checks
log warnings; a critical failure aborts startup with StartupError.
"""

from typing import List, Dict, Any
import structlog

from teamtrack.infrastructure.config import Settings, get_settings, get_workspace_path
from teamtrack.infrastructure.exceptions import StorageError
from teamtrack.infrastructure.storage import JsonStorage

logger = structlog.get_logger(__name__)


class StartupChecker:
    """Validates configuration and storage on API startup."""

    def __init__(self, settings: Settings = None):
        self.settings = settings or get_settings()
        self.results: List[Dict[str, Any]] = []

    async def run_all(self) -> bool:
        """
        Run all startup checks.

        Returns True if all critical checks pass.
        """
        logger.info("startup_checks_begin")

        checks = [
            ("workspace_directory", self._check_workspace, True),
            ("storage_writable", self._check_storage_writable, True),
            ("passcodes_configured", self._check_passcodes, True),
            ("document_readable", self._check_document, False),  # non-critical
            ("default_roster", self._check_roster, False),  # non-critical
        ]

        all_critical_passed = True

        for name, check_fn, is_critical in checks:
            try:
                passed = await check_fn()
                self.results.append({
                    "name": name,
                    "status": "pass" if passed else ("fail" if is_critical else "warn"),
                    "critical": is_critical,
                })
                if not passed and is_critical:
                    all_critical_passed = False
                    logger.error("startup_check_failed", check=name, critical=True)
                elif not passed:
                    logger.warning("startup_check_warn", check=name)
            except Exception as e:
                self.results.append({
                    "name": name,
                    "status": "error",
                    "error": str(e),
                    "critical": is_critical,
                })
                if is_critical:
                    all_critical_passed = False
                    logger.error("startup_check_error", check=name, error=str(e))

        passed_count = sum(1 for r in self.results if r["status"] == "pass")
        total = len(self.results)

        if all_critical_passed:
            logger.info("startup_checks_passed", passed=passed_count, total=total)
        else:
            logger.error("startup_checks_critical_failure", failed=self.failed_checks)

        return all_critical_passed

    @property
    def failed_checks(self) -> List[str]:
        return [r["name"] for r in self.results if r["status"] in ("fail", "error") and r["critical"]]

    async def _check_workspace(self) -> bool:
        """Verify workspace directory exists (create if needed)."""
        workspace = get_workspace_path(settings=self.settings)

        if not workspace.exists():
            workspace.mkdir(parents=True, exist_ok=True)
            logger.info("workspace_created", path=str(workspace))

        return workspace.is_dir()

    async def _check_storage_writable(self) -> bool:
        """Verify we can write to workspace."""
        workspace = get_workspace_path(settings=self.settings)
        test_file = workspace / ".startup_write_test"

        try:
            test_file.write_text("ok")
            test_file.unlink()
            return True
        except OSError as e:
            logger.error("storage_not_writable", path=str(workspace), error=str(e))
            return False

    async def _check_passcodes(self) -> bool:
        """Both role secrets must be set and must differ, or roles are ambiguous."""
        lead = self.settings.lead_passcode
        member = self.settings.member_passcode
        if not lead or not member:
            logger.error("passcode_missing", lead_set=bool(lead), member_set=bool(member))
            return False
        if lead == member:
            logger.error("passcodes_identical")
            return False
        return True

    async def _check_document(self) -> bool:
        """An existing document must parse; a missing one is created on first fetch."""
        storage = JsonStorage(get_workspace_path(settings=self.settings))
        try:
            await storage.read(self.settings.document_file)
        except StorageError as e:
            logger.warning("workspace_document_unreadable", error=e.message, **e.details)
            return False
        return True

    async def _check_roster(self) -> bool:
        if not self.settings.default_team_members:
            logger.warning("default_roster_empty")
            return False
        return True


async def run_startup_checks(settings: Settings = None) -> StartupChecker:
    """Run all startup checks and return the checker with its results."""
    checker = StartupChecker(settings)
    await checker.run_all()
    return checker
