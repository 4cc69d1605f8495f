from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    COMPANY = "company"
    WORKER = "worker"


@dataclass(slots=True, frozen=True)
class Principal:
    role: ActorRole
    subject: str

    @property
    def is_company(self) -> bool:
        return self.role is ActorRole.COMPANY

    @property
    def is_worker(self) -> bool:
        return self.role is ActorRole.WORKER


def company(subject: str) -> Principal:
    return Principal(role=ActorRole.COMPANY, subject=subject)


def worker(subject: str) -> Principal:
    return Principal(role=ActorRole.WORKER, subject=subject)


def parse_role(raw: str | None) -> ActorRole | None:
    if not raw:
        return None
    try:
        return ActorRole(raw.strip().lower())
    except ValueError:
        return None
