import os
import tempfile

# Keep preferences and the debug log out of the real ~/.config during tests
_TMP_DIR = tempfile.mkdtemp(prefix="nodekiller-tests-")
os.environ["NODEKILLER_CONFIG_DIR"] = _TMP_DIR
os.environ["NODEKILLER_DEBUG_LOG"] = os.path.join(_TMP_DIR, "debug.log")
