class MembershipError(Exception):
    """Base class for classroom membership failures."""


class InvalidReferenceError(MembershipError):
    pass


class ClassroomNotFoundError(InvalidReferenceError):
    def __init__(self, code: str):
        super().__init__("Invalid classroom code")
        self.code = code


class UserNotFoundError(InvalidReferenceError):
    def __init__(self, email: str):
        super().__init__("User not found")
        self.email = email


class UnauthenticatedError(MembershipError):
    def __init__(self):
        super().__init__("User is not authenticated")


class MembershipConflictError(MembershipError):
    def __init__(self):
        super().__init__("User is already a member of this classroom")


class CodeAllocationError(MembershipError):
    def __init__(self, attempts: int):
        super().__init__(f"Could not allocate a unique classroom code after {attempts} attempts")
        self.attempts = attempts
