"""
EPP Models

Data classes for messages exchanged on an EPP connection.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Greeting:
    """EPP server greeting."""
    server_id: str
    server_date: Optional[datetime] = None
    version: List[str] = field(default_factory=list)
    lang: List[str] = field(default_factory=list)
    obj_uris: List[str] = field(default_factory=list)
    ext_uris: List[str] = field(default_factory=list)
