"""
exitnode: short-lived cloud exit nodes for tunnel workloads.

Provision a VM, open the tunnel ports, hand back its address.
Tear it down when the tunnel is done.
"""

import os

__version__ = "0.1.0"

EXITNODE_HOME = os.environ.get("EXITNODE_HOME", "~/.exitnode")
