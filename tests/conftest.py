from __future__ import annotations

import os

# UI tests construct widgets without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
