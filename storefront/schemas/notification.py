from enum import Enum
from pydantic import BaseModel, ConfigDict


class Severity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# Transient message shown by the UI; owned by NotificationRelay
class NotificationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    severity: Severity
    created_at: float
    duration: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.duration

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR
