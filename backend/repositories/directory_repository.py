"""Read-only lookups of users, services and officers."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.models.department import Service
from backend.models.officer import Officer
from backend.models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def exists(self, user_id: int) -> bool:
        return self.db.scalar(select(func.count()).select_from(User).where(User.id == user_id)) > 0


class ServiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def exists(self, service_id: int) -> bool:
        return self.db.scalar(select(func.count()).select_from(Service).where(Service.id == service_id)) > 0

    def get_department_id(self, service_id: int) -> int | None:
        return self.db.scalar(select(Service.department_id).where(Service.id == service_id))


class OfficerRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, officer_id: int) -> Officer | None:
        return self.db.get(Officer, officer_id)

    def find_by_department(self, department_id: int) -> list[Officer]:
        return self.db.query(Officer).filter(Officer.department_id == department_id).order_by(Officer.id.asc()).all()
