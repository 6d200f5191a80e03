import os
import tempfile

# Keep the INI file and logs written at import time out of the user's home
os.environ.setdefault("APPDATA", tempfile.mkdtemp(prefix="photocull-test-"))
