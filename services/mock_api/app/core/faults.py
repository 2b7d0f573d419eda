from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class NetworkFault(str, Enum):
    NONE = "none"
    TIMEOUT = "timeout"     # never answer
    RESET = "reset"         # drop the connection mid-request
    REFUSE = "refuse"       # drop the connection before any reply

    @property
    def aborts_connection(self) -> bool:
        return self in (NetworkFault.RESET, NetworkFault.REFUSE)


@dataclass(frozen=True)
class MockConfig:
    status_code: int = 200              # status echoed by the mock endpoint
    delay_ms: int = 0                   # added latency before responding
    network_fault: NetworkFault = NetworkFault.NONE

    @property
    def delay_s(self) -> float:
        return self.delay_ms / 1000.0

    @property
    def outcome(self) -> str:
        return "success" if 200 <= self.status_code < 300 else "error"

    @property
    def wire_status_code(self) -> int:
        # HTTP/1.1 status lines can't carry informational or >599 codes
        if 200 <= self.status_code <= 599:
            return self.status_code
        return 500

    def to_wire(self) -> dict:
        return {
            "statusCode": self.status_code,
            "delay": self.delay_ms,
            "networkError": self.network_fault.value,
        }
