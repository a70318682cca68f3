"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from app.dao.base import BaseDAO
from app.dao.user import UserDAO
from app.dao.audit_log import AuditLogDAO
from app.dao.service_category import ServiceCategoryDAO, ClinicServiceDAO
from app.dao.doctor import DoctorDAO, UnavailableDateDAO
from app.dao.patient import PatientDAO
from app.dao.appointment import AppointmentDAO
from app.dao.medicine import MedicineDAO
from app.dao.inventory import InventoryDAO

__all__ = [
    "BaseDAO",
    "UserDAO",
    "AuditLogDAO",
    "ServiceCategoryDAO",
    "ClinicServiceDAO",
    "DoctorDAO",
    "UnavailableDateDAO",
    "PatientDAO",
    "AppointmentDAO",
    "MedicineDAO",
    "InventoryDAO",
]
