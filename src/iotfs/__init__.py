"""
iotfs: browse and edit an IoT resource catalog as a file tree.

Things, certificates, policies and topic rules become directories;
attaching one resource to another is a symlink; publishing to a topic
is a write.
"""

import os

__version__ = "0.1.0"

IOTFS_HOME = os.environ.get("IOTFS_HOME", "~/.iotfs")
