import logging

from kiosk_agent.infrastructure.android.adb_bridge import AdbBridge

logger = logging.getLogger(__name__)

LAUNCHER_CATEGORY = "android.intent.category.LAUNCHER"


class AdbAppLauncher:

    def __init__(self, bridge: AdbBridge):
        self.bridge = bridge

    def is_installed(self, app_id: str) -> bool:
        result = self.bridge.shell("pm", "path", app_id)
        return result.ok and "package:" in result.out

    def launch(self, app_id: str) -> bool:
        if not self.is_installed(app_id):
            logger.warning("Launch skipped, app not installed | app=%s", app_id)
            return False

        # monkey fires the launcher intent, which brings an existing task to
        # the front instead of starting a second instance.
        result = self.bridge.shell("monkey", "-p", app_id, "-c", LAUNCHER_CATEGORY, "1")
        if not result.ok or "No activities found" in result.out:
            logger.warning(
                "Launch rejected | app=%s rc=%s out=%s",
                app_id,
                result.rc,
                result.out.strip()[-200:],
            )
            return False

        logger.info("App launched | app=%s", app_id)
        return True
