from .iam import (
    Plan as Plan,
    User as User,
)
