"""Source adapters for signal ingestion."""

from stealth.ingestion.adapters.arena import ArenaAdapter
from stealth.ingestion.adapters.cefc import CefcAdapter
from stealth.ingestion.adapters.ip_australia import IpAustraliaAdapter
from stealth.ingestion.adapters.nsw_planning import NswPlanningAdapter
from stealth.ingestion.adapters.qld_epa import QldEpaAdapter
from stealth.ingestion.adapters.sample import SampleAdapter

__all__ = [
    "ArenaAdapter",
    "CefcAdapter",
    "IpAustraliaAdapter",
    "NswPlanningAdapter",
    "QldEpaAdapter",
    "SampleAdapter",
]
