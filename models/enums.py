from enum import Enum


class TeamStatus(str, Enum):
    REGISTERED = "registered"
    WAITING = "waiting"
    CHECKED_IN = "checked-in"
    COMPLETED = "completed"


class Category(str, Enum):
    JUNIOR = "jr"
    SENIOR = "sr"


class UserRole(str, Enum):
    VOLUNTEER = "volunteer"
    JUDGE = "judge"
    ADMIN = "admin"
