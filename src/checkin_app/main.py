from __future__ import annotations

import logging
import sys
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
SRC_DIR = PACKAGE_DIR.parent
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from checkin_app.config.settings import settings
from checkin_app.ui.app import CheckInApp

log = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    log.info("Starting with %s", settings.describe())

    app = CheckInApp(settings)
    app.run()


if __name__ == "__main__":
    main()
