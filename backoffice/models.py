# backoffice/models.py
# Declarative mirror of the MySQL schema; Alembic autogenerate compares against it.
from datetime import datetime

from sqlalchemy import (
    Boolean, CHAR, Column, DECIMAL, Date, DateTime, ForeignKey, Integer, String, Text,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class User(Base):
    __tablename__ = 'users'
    id = Column(CHAR(36), primary_key=True)
    email = Column(String(191), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class UserRole(Base):
    __tablename__ = 'user_roles'
    id = Column(CHAR(36), primary_key=True)
    user_id = Column(CHAR(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    role = Column(String(32), nullable=False)  # admin | employee
    created_by = Column(CHAR(36))
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)


class Profile(Base):
    __tablename__ = 'profiles'
    id = Column(CHAR(36), primary_key=True)
    user_id = Column(CHAR(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    full_name = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)


class Client(Base):
    __tablename__ = 'clients'
    id = Column(CHAR(36), primary_key=True)
    full_name = Column(String(255), nullable=False)
    city = Column(String(120))
    source = Column(String(120))
    manager = Column(String(255))
    contract_amount = Column(DECIMAL(15, 2), nullable=False)
    first_payment = Column(DECIMAL(15, 2), nullable=False, default=0)
    monthly_payment = Column(DECIMAL(15, 2), nullable=False)
    installment_period = Column(Integer, nullable=False)
    payment_day = Column(Integer, nullable=False)
    contract_date = Column(Date, nullable=False)
    total_paid = Column(DECIMAL(15, 2), nullable=False, default=0)
    remaining_amount = Column(DECIMAL(15, 2), nullable=False, default=0)
    deposit_paid = Column(DECIMAL(15, 2), nullable=False, default=0)
    deposit_target = Column(DECIMAL(15, 2), nullable=False, default=50000)
    is_terminated = Column(Boolean, nullable=False, default=False)
    terminated_at = Column(DateTime)
    termination_reason = Column(Text)
    is_suspended = Column(Boolean, nullable=False, default=False)
    suspended_at = Column(DateTime)
    suspension_reason = Column(Text)
    employee_id = Column(CHAR(36), index=True)
    user_id = Column(CHAR(36))
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)


class Payment(Base):
    __tablename__ = 'payments'
    __table_args__ = (
        UniqueConstraint('client_id', 'payment_number', name='ux_payments_client_number'),
        Index('ix_payments_due_date', 'due_date'),
    )
    id = Column(CHAR(36), primary_key=True)
    client_id = Column(CHAR(36), ForeignKey('clients.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(CHAR(36))
    payment_number = Column(Integer, nullable=False)
    original_amount = Column(DECIMAL(15, 2), nullable=False)
    custom_amount = Column(DECIMAL(15, 2))
    due_date = Column(Date, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime)
    account = Column(String(120))
    description = Column(Text)
    payment_type = Column(String(20), nullable=False, default='monthly')  # first | monthly | deposit | additional
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)


class PaymentHistory(Base):
    __tablename__ = 'payment_history'
    id = Column(CHAR(36), primary_key=True)
    payment_id = Column(CHAR(36), ForeignKey('payments.id', ondelete='CASCADE'), nullable=False, index=True)
    client_id = Column(CHAR(36), nullable=False, index=True)
    field_name = Column(String(64), nullable=False)
    old_value = Column(Text)
    new_value = Column(Text)
    changed_by = Column(CHAR(36))
    changed_at = Column(DateTime, nullable=False, default=datetime.now)


class PaymentReceipt(Base):
    __tablename__ = 'payment_receipts'
    id = Column(CHAR(36), primary_key=True)
    client_id = Column(CHAR(36), ForeignKey('clients.id', ondelete='CASCADE'), nullable=False, index=True)
    payment_id = Column(CHAR(36), ForeignKey('payments.id', ondelete='SET NULL'))
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    mime_type = Column(String(100))
    user_id = Column(CHAR(36))
    uploaded_at = Column(DateTime, nullable=False, default=datetime.now)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)


class Agent(Base):
    __tablename__ = 'agents'
    id = Column(CHAR(36), primary_key=True)
    employee_id = Column(CHAR(36), index=True)
    agent_full_name = Column(String(255), nullable=False)
    agent_phone = Column(String(50), nullable=False)
    recommendation_name = Column(String(255))
    lead_link = Column(String(1024))
    mop_name = Column(String(255))
    client_category = Column(String(120))
    first_payment_date = Column(Date)
    first_payment_amount = Column(DECIMAL(15, 2), nullable=False, default=0)
    reward_amount = Column(DECIMAL(15, 2), nullable=False, default=0)
    remaining_payment = Column(DECIMAL(15, 2), nullable=False, default=0)
    payment_month_1 = Column(DECIMAL(15, 2), nullable=False, default=0)
    payment_month_1_completed = Column(Boolean, nullable=False, default=False)
    payment_month_2 = Column(DECIMAL(15, 2), nullable=False, default=0)
    payment_month_2_completed = Column(Boolean, nullable=False, default=False)
    payment_month_3 = Column(DECIMAL(15, 2), nullable=False, default=0)
    payment_month_3_completed = Column(Boolean, nullable=False, default=False)
    payout_1 = Column(DECIMAL(15, 2), nullable=False, default=0)
    payout_1_completed = Column(Boolean, nullable=False, default=False)
    payout_2 = Column(DECIMAL(15, 2), nullable=False, default=0)
    payout_2_completed = Column(Boolean, nullable=False, default=False)
    payout_3 = Column(DECIMAL(15, 2), nullable=False, default=0)
    payout_3_completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)


class EmployeeBonus(Base):
    __tablename__ = 'employee_bonuses'
    __table_args__ = (
        UniqueConstraint('employee_id', 'month', 'year', name='ux_employee_bonuses_period'),
    )
    id = Column(CHAR(36), primary_key=True)
    employee_id = Column(CHAR(36), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    reviews_count = Column(Integer, nullable=False, default=0)
    agents_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)


class IncentiveRule(Base):
    __tablename__ = 'incentive_rules'
    id = Column(CHAR(36), primary_key=True)
    employee_id = Column(CHAR(36), index=True)
    role = Column(String(32))
    min_average_percent = Column(DECIMAL(5, 2), nullable=False)
    bonus_amount = Column(DECIMAL(15, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


# Tables copied by the export utility, parents first.
CORE_TABLES = (
    'users', 'user_roles', 'profiles', 'clients', 'payments', 'payment_history',
    'payment_receipts', 'agents', 'employee_bonuses', 'incentive_rules',
)
