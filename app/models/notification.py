from enum import Enum


class NotificationType(str, Enum):
    PURCHASE = "purchase"
    TOKEN_REWARD = "token_reward"

    def __str__(self):
        return self.value
