"""FloWorx - client configuration and mailbox provisioning for service businesses"""

from __future__ import annotations

__version__ = "1.0.0"
