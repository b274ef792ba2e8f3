from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"
    # Not a user: the payment collaborator calling back through the webhook
    PAYMENT_PROCESSOR = "payment_processor"


@dataclass(frozen=True)
class Actor:
    """The caller of a transition, as supplied by the identity layer."""

    user_id: str
    role: Role = Role.BUYER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def payment_processor(cls) -> "Actor":
        return cls(user_id="payment-processor", role=Role.PAYMENT_PROCESSOR)
