from __future__ import annotations

import os
import tempfile

# Settings read the environment at import time; point them at a scratch dir first.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="rehab_pose_test_"))
os.environ["FRAME_SOURCE"] = "synthetic"
os.environ["FRAME_LOOP_ENABLED"] = "0"
os.environ.setdefault("SYNTHETIC_SEED", "7")
os.environ.pop("API_KEY", None)
os.environ.pop("TOLERANCE_PROFILE_PATH", None)
os.environ.pop("VIDEO_PATH", None)
