"""Initial schema - clinic tables

Revision ID: 001
Revises:
Create Date: 2026-10-17

WHY: Creates the staff, audit, service catalogue, doctor, patient,
appointment and inventory tables in one revision. Enum columns store the
enum member names, matching SQLAlchemy's default Enum behaviour.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


userrole = sa.Enum('SUPER_ADMIN', 'ADMIN', 'STAFF', 'RECEPTIONIST', 'NURSE', name='userrole')
auditactortype = sa.Enum('USER', 'DOCTOR', 'PATIENT', 'SYSTEM', name='auditactortype')
auditaction = sa.Enum(
    'LOGIN_SUCCESS', 'LOGIN_FAILURE', 'LOGOUT', 'PASSWORD_CHANGE',
    'CREATE', 'UPDATE', 'DELETE', 'STATUS_CHANGE',
    'ACCOUNT_CREATED', 'ACCOUNT_ACTIVATED', 'ACCOUNT_DEACTIVATED',
    'BULK_OPERATION', 'EXPORT_DATA',
    name='auditaction',
)
verificationstatus = sa.Enum('PENDING', 'VERIFIED', 'REJECTED', name='verificationstatus')
unavailabilitytype = sa.Enum('FULL_DAY', 'HALF_DAY', 'MORNING', 'AFTERNOON', name='unavailabilitytype')
gender = sa.Enum('MALE', 'FEMALE', 'OTHER', name='gender')
bloodgroup = sa.Enum(
    'A_POSITIVE', 'A_NEGATIVE', 'B_POSITIVE', 'B_NEGATIVE',
    'AB_POSITIVE', 'AB_NEGATIVE', 'O_POSITIVE', 'O_NEGATIVE',
    name='bloodgroup',
)
registrationsource = sa.Enum(
    'WEBSITE', 'MOBILE_APP', 'WHATSAPP', 'PHONE_CALL', 'IN_PERSON', 'REFERRAL',
    name='registrationsource',
)
appointmenttype = sa.Enum(
    'CONSULTATION', 'FOLLOW_UP', 'EMERGENCY', 'ROUTINE_CHECKUP', 'PROCEDURE',
    name='appointmenttype',
)
appointmentstatus = sa.Enum(
    'SCHEDULED', 'CONFIRMED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', 'NO_SHOW',
    name='appointmentstatus',
)
appointmentpriority = sa.Enum('LOW', 'MEDIUM', 'HIGH', 'URGENT', name='appointmentpriority')
bookingsource = sa.Enum(
    'WEBSITE', 'MOBILE_APP', 'WHATSAPP', 'PHONE_CALL', 'EMAIL', 'SMS', 'IN_PERSON',
    'THIRD_PARTY', 'REFERRAL', 'QR_CODE', 'SOCIAL_MEDIA', 'VOICE_BOT', 'API',
    name='bookingsource',
)
paymentstatus = sa.Enum('PENDING', 'PAID', 'FAILED', 'REFUNDED', name='paymentstatus')
medicinecategory = sa.Enum(
    'ANTIBIOTIC', 'PAIN_RELIEF', 'ANTI_INFLAMMATORY', 'ANTISEPTIC', 'ANESTHETIC',
    'MOUTH_RINSE', 'FLUORIDE_TREATMENT', 'VITAMIN_SUPPLEMENT',
    name='medicinecategory',
)
dentaluse = sa.Enum(
    'ROOT_CANAL', 'TOOTH_EXTRACTION', 'DENTAL_CLEANING', 'DENTAL_FILLING',
    'GUM_TREATMENT', 'ORAL_SURGERY', 'PREVENTIVE_CARE', 'GENERAL_TREATMENT',
    name='dentaluse',
)
dosageform = sa.Enum(
    'TABLET', 'CAPSULE', 'LIQUID_SYRUP', 'GEL', 'OINTMENT', 'MOUTHWASH', 'DROPS',
    name='dosageform',
)
medicineunit = sa.Enum('MG', 'G', 'ML', 'MCG', 'IU', 'PERCENT', 'UNITS', name='medicineunit')
medicinestatus = sa.Enum('ACTIVE', 'INACTIVE', 'DISCONTINUED', name='medicinestatus')
itemcategory = sa.Enum(
    'IMPLANT', 'ABUTMENT', 'CROWN', 'BRIDGE', 'MATERIAL', 'INSTRUMENT', 'CONSUMABLE', 'EQUIPMENT',
    name='itemcategory',
)
itemtype = sa.Enum(
    'STRAUMANN_BLX', 'SWISS', 'DENTIUM', 'DENTSPLY', 'NOBEL', 'OSSTEM', 'MIS',
    'HEALING_ABUTMENT', 'IMPRESSION_MATERIAL', 'CEMENT', 'COMPOSITE', 'CROWN_MATERIAL',
    'SURGICAL_KIT', 'GLOVES', 'OTHER',
    name='itemtype',
)
supplier = sa.Enum(
    'DENTIST_SHOP', 'INTERNATIONAL_DENTAL', 'VINIT_ENTERPRISES', 'KUMAR_DENTAL',
    'SACHDEVA_GLOVES', 'NEO_ENDO', 'PRASHANT_LAB', 'SHANKAR_LAB', 'GOVIND_LAB',
    name='supplier',
)
stockunit = sa.Enum('PIECES', 'BOXES', 'KITS', 'BOTTLES', 'TUBES', 'SETS', name='stockunit')
materialstatus = sa.Enum('IN_STOCK', 'LOW_STOCK', 'OUT_OF_STOCK', 'EXPIRED', name='materialstatus')
supplierpaymentstatus = sa.Enum('PAID', 'PENDING', 'PARTIAL', name='supplierpaymentstatus')
paymentmode = sa.Enum('CASH', 'CARD', 'BANK_TRANSFER', 'UPI', 'CHEQUE', 'ONLINE', 'OTHER', name='paymentmode')

ENUMS = (
    userrole, auditactortype, auditaction, verificationstatus, unavailabilitytype,
    gender, bloodgroup, registrationsource, appointmenttype, appointmentstatus,
    appointmentpriority, bookingsource, paymentstatus, medicinecategory, dentaluse,
    dosageform, medicineunit, medicinestatus, itemcategory, itemtype, supplier,
    stockunit, materialstatus, supplierpaymentstatus, paymentmode,
)


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade() -> None:
    """
    Create all clinic tables.

    WHY: Order follows foreign keys: users and doctors/patients before
    appointments and inventory.
    """
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', userrole, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_type', auditactortype, nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', auditaction, nullable=False),
        sa.Column('resource_type', sa.String(length=100), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('extra_data', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    for column in ('id', 'actor_type', 'actor_id', 'action', 'resource_type', 'resource_id', 'ip_address'):
        op.create_index(f'ix_audit_logs_{column}', 'audit_logs', [column])

    op.create_table(
        'service_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('color', sa.String(length=7), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('service_count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_service_categories_id', 'service_categories', ['id'])
    op.create_index('ix_service_categories_name', 'service_categories', ['name'], unique=True)
    op.create_index('ix_service_categories_is_active', 'service_categories', ['is_active'])

    op.create_table(
        'clinic_services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['service_categories.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clinic_services_id', 'clinic_services', ['id'])
    op.create_index('ix_clinic_services_name', 'clinic_services', ['name'])
    op.create_index('ix_clinic_services_category_id', 'clinic_services', ['category_id'])

    op.create_table(
        'doctors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('doctor_code', sa.String(length=40), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('specialization', sa.String(length=100), nullable=False),
        sa.Column('qualifications', sa.JSON(), nullable=False),
        sa.Column('experience', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('license_number', sa.String(length=20), nullable=False),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('working_days', sa.JSON(), nullable=False),
        sa.Column('slot_duration', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('break_times', sa.JSON(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('max_appointments_per_day', sa.Integer(), nullable=False, server_default='20'),
        sa.Column('consultation_fee', sa.Float(), nullable=False, server_default='0'),
        sa.Column('follow_up_fee', sa.Float(), nullable=True),
        sa.Column('emergency_fee', sa.Float(), nullable=True),
        sa.Column('total_appointments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_appointments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cancelled_appointments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rating', sa.Float(), nullable=False, server_default='0'),
        sa.Column('review_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_verified_by_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verification_status', verificationstatus, nullable=False),
        sa.Column('verification_notes', sa.Text(), nullable=True),
        sa.Column('status_reason', sa.String(length=200), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.Column('last_password_change', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone'),
    )
    op.create_index('ix_doctors_id', 'doctors', ['id'])
    op.create_index('ix_doctors_doctor_code', 'doctors', ['doctor_code'], unique=True)
    op.create_index('ix_doctors_email', 'doctors', ['email'], unique=True)
    op.create_index('ix_doctors_license_number', 'doctors', ['license_number'], unique=True)
    op.create_index('ix_doctors_specialization', 'doctors', ['specialization'])
    op.create_index('ix_doctors_is_active', 'doctors', ['is_active'])

    op.create_table(
        'doctor_unavailable_dates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('doctor_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('reason', sa.String(length=100), nullable=False),
        sa.Column('type', unavailabilitytype, nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('doctor_id', 'date', name='uq_doctor_unavailable_date'),
    )
    op.create_index('ix_doctor_unavailable_dates_id', 'doctor_unavailable_dates', ['id'])
    op.create_index('ix_doctor_unavailable_dates_doctor_id', 'doctor_unavailable_dates', ['doctor_id'])
    op.create_index('ix_doctor_unavailable_dates_date', 'doctor_unavailable_dates', ['date'])

    op.create_table(
        'patients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('patient_code', sa.String(length=40), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=False),
        sa.Column('gender', gender, nullable=False),
        sa.Column('blood_group', bloodgroup, nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('alternate_phone', sa.String(length=20), nullable=True),
        sa.Column('address', sa.JSON(), nullable=True),
        sa.Column('medical_info', sa.JSON(), nullable=False),
        sa.Column('preferences', sa.JSON(), nullable=False),
        sa.Column('total_appointments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_appointments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cancelled_appointments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('no_show_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_visit', sa.DateTime(), nullable=True),
        sa.Column('registration_source', registrationsource, nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_patients_id', 'patients', ['id'])
    op.create_index('ix_patients_patient_code', 'patients', ['patient_code'], unique=True)
    op.create_index('ix_patients_email', 'patients', ['email'], unique=True)
    op.create_index('ix_patients_phone', 'patients', ['phone'])
    op.create_index('ix_patients_is_active', 'patients', ['is_active'])
    op.create_index('ix_patients_is_deleted', 'patients', ['is_deleted'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('appointment_code', sa.String(length=40), nullable=False),
        sa.Column('patient_id', sa.Integer(), nullable=False),
        sa.Column('doctor_id', sa.Integer(), nullable=False),
        sa.Column('appointment_date', sa.Date(), nullable=False),
        sa.Column('appointment_datetime', sa.DateTime(), nullable=False),
        sa.Column('end_datetime', sa.DateTime(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('appointment_type', appointmenttype, nullable=False),
        sa.Column('status', appointmentstatus, nullable=False),
        sa.Column('priority', appointmentpriority, nullable=False),
        sa.Column('booking_source', bookingsource, nullable=False),
        sa.Column('symptoms', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('special_requirements', sa.Text(), nullable=True),
        sa.Column('reminders_sent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reminder_sent', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
        sa.Column('status_update_reason', sa.String(length=500), nullable=True),
        sa.Column('payment_status', paymentstatus, nullable=False),
        sa.Column('payment_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('consultation', sa.JSON(), nullable=True),
        sa.Column('booking_metadata', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_appointments_id', 'appointments', ['id'])
    op.create_index('ix_appointments_appointment_code', 'appointments', ['appointment_code'], unique=True)
    for column in ('patient_id', 'doctor_id', 'appointment_date', 'appointment_datetime', 'status', 'booking_source'):
        op.create_index(f'ix_appointments_{column}', 'appointments', [column])

    op.create_table(
        'medicines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('medicine_name', sa.String(length=100), nullable=False),
        sa.Column('generic_name', sa.String(length=100), nullable=True),
        sa.Column('brand_name', sa.String(length=100), nullable=True),
        sa.Column('category', medicinecategory, nullable=False),
        sa.Column('dental_use', dentaluse, nullable=False),
        sa.Column('dosage_form', dosageform, nullable=False),
        sa.Column('strength', sa.String(length=50), nullable=False),
        sa.Column('unit', medicineunit, nullable=False),
        sa.Column('manufacturer', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('dosage_instructions', sa.String(length=500), nullable=False),
        sa.Column('prescription_required', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', medicinestatus, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    for column in ('id', 'medicine_name', 'category', 'dental_use', 'status'):
        op.create_index(f'ix_medicines_{column}', 'medicines', [column])

    op.create_table(
        'implant_materials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=200), nullable=False),
        sa.Column('category', itemcategory, nullable=False),
        sa.Column('type', itemtype, nullable=False),
        sa.Column('implant_brand', sa.String(length=100), nullable=False),
        sa.Column('supplier', supplier, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit', stockunit, nullable=False),
        sa.Column('unit_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_cost', sa.Float(), nullable=False, server_default='0'),
        sa.Column('received_date', sa.Date(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('batch_number', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', materialstatus, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('specifications', sa.Text(), nullable=True),
        sa.Column('storage_conditions', sa.String(length=500), nullable=True),
        sa.Column('minimum_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', supplierpaymentstatus, nullable=False),
        sa.Column('payment_mode', paymentmode, nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('invoice_number', sa.String(length=100), nullable=True),
        sa.Column('amount_paid', sa.Float(), nullable=False, server_default='0'),
        sa.Column('amount_pending', sa.Float(), nullable=False, server_default='0'),
        sa.Column('payment_notes', sa.String(length=500), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('last_updated_by_user_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['last_updated_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    for column in (
        'id', 'item_name', 'category', 'type', 'implant_brand', 'supplier', 'received_date',
        'expiry_date', 'batch_number', 'is_active', 'status', 'payment_status',
    ):
        op.create_index(f'ix_implant_materials_{column}', 'implant_materials', [column])


def downgrade() -> None:
    """
    Drop all clinic tables and their enum types.

    WHY: Downgrade allows rollback if issues are discovered after deployment.
    """
    for table in (
        'implant_materials',
        'medicines',
        'appointments',
        'patients',
        'doctor_unavailable_dates',
        'doctors',
        'clinic_services',
        'service_categories',
        'audit_logs',
        'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.drop(bind, checkfirst=True)
