from ...domain.entities import User

MIN_PASSWORD_LENGTH = 6


class IUserAccountRepository:
    def get_by_email(self, email: str) -> User | None: ...
    def create(self, email: str, password_hash: str, name: str = "", role: str = "student") -> User: ...


class IPasswordHasher:
    def hash(self, plain: str) -> str: ...


class RegisterUser:
    def __init__(self, repo: IUserAccountRepository, hasher: IPasswordHasher):
        self.repo = repo
        self.hasher = hasher

    def execute(self, email: str, password: str, name: str = "") -> User:
        if "@" not in email:
            raise ValueError("Invalid email")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError("Password too short")
        if self.repo.get_by_email(email):
            raise ValueError("Email already registered")
        pwd_hash = self.hasher.hash(password)
        return self.repo.create(email, pwd_hash, name=name.strip())
