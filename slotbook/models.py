from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata

ROLES = ("CUSTOMER", "BUSINESS_OWNER", "STAFF")
APPOINTMENT_STATUSES = ("PENDING", "CONFIRMED", "COMPLETED", "CANCELLED")
ACCOUNT_TOKEN_PURPOSES = ("VERIFY_EMAIL", "RESET_PASSWORD")
WEEKDAYS = (
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
)


def _created_at():
    return mapped_column(DateTime, nullable=False, server_default=func.now())


def _updated_at():
    return mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )


class AuthUser(Base):
    __tablename__ = "auth_user"
    __table_args__ = (Index("uq_auth_user_email", "email", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    email = mapped_column(String(255), nullable=False)
    password_hash = mapped_column(String(72), nullable=False)
    full_name = mapped_column(String(150), nullable=False)
    phone = mapped_column(String(25))
    role = mapped_column(Enum(*ROLES, name="user_role"), nullable=False)
    email_verified = mapped_column(Boolean, nullable=False, default=False)
    created_at = _created_at()
    updated_at = _updated_at()

    business: Mapped[Optional["Business"]] = relationship(
        "Business", uselist=False, back_populates="owner"
    )
    employee: Mapped[Optional["Employee"]] = relationship(
        "Employee", uselist=False, back_populates="user"
    )
    notification: Mapped[List["Notification"]] = relationship(
        "Notification", uselist=True, back_populates="user"
    )
    account_token: Mapped[List["AccountToken"]] = relationship(
        "AccountToken", uselist=True, back_populates="user"
    )


class Business(Base):
    __tablename__ = "business"
    __table_args__ = (
        ForeignKeyConstraint(
            ["owner_id"], ["auth_user.id"], ondelete="RESTRICT", name="fk_business_owner"
        ),
        # at most one business per owner
        Index("uq_business_owner", "owner_id", unique=True),
        Index("idx_business_city", "city"),
        Index("idx_business_category", "category"),
    )

    id = mapped_column(Integer, primary_key=True)
    owner_id = mapped_column(Integer, nullable=False)
    name = mapped_column(String(120), nullable=False)
    description = mapped_column(Text)
    category = mapped_column(String(80), nullable=False)
    business_type = mapped_column(String(80), nullable=False)
    address = mapped_column(String(255), nullable=False)
    city = mapped_column(String(100), nullable=False)
    phone = mapped_column(String(25))
    email = mapped_column(String(255))
    image_url = mapped_column(Text)
    created_at = _created_at()
    updated_at = _updated_at()

    owner: Mapped["AuthUser"] = relationship("AuthUser", back_populates="business")
    service: Mapped[List["Service"]] = relationship(
        "Service", uselist=True, back_populates="business"
    )
    employee: Mapped[List["Employee"]] = relationship(
        "Employee", uselist=True, back_populates="business"
    )
    appointment: Mapped[List["Appointment"]] = relationship(
        "Appointment", uselist=True, back_populates="business"
    )
    review: Mapped[List["Review"]] = relationship(
        "Review", uselist=True, back_populates="business"
    )


class Service(Base):
    __tablename__ = "service"
    __table_args__ = (
        ForeignKeyConstraint(
            ["business_id"], ["business.id"], ondelete="RESTRICT", name="fk_serv_business"
        ),
        Index("fk_serv_business", "business_id"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id = mapped_column(Integer, nullable=False)
    name = mapped_column(String(80), nullable=False)
    description = mapped_column(Text)
    duration = mapped_column(Integer, nullable=False, default=30)
    price = mapped_column(Numeric(10, 2), nullable=False, default=0)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    created_at = _created_at()
    updated_at = _updated_at()

    business: Mapped["Business"] = relationship("Business", back_populates="service")
    appointment: Mapped[List["Appointment"]] = relationship(
        "Appointment", uselist=True, back_populates="service"
    )


class Employee(Base):
    __tablename__ = "employee"
    __table_args__ = (
        ForeignKeyConstraint(["business_id"], ["business.id"], name="fk_emp_business"),
        ForeignKeyConstraint(
            ["user_id"], ["auth_user.id"], ondelete="SET NULL", name="fk_emp_auth_user"
        ),
        Index("fk_emp_business", "business_id"),
        Index("uq_emp_user", "user_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    business_id = mapped_column(Integer, nullable=False)
    # linked once the invitation is accepted
    user_id = mapped_column(Integer)
    name = mapped_column(String(150), nullable=False)
    email = mapped_column(String(255), nullable=False)
    phone = mapped_column(String(25))
    specialization = mapped_column(String(120))
    is_active = mapped_column(Boolean, nullable=False, default=True)
    created_at = _created_at()
    updated_at = _updated_at()

    business: Mapped["Business"] = relationship("Business", back_populates="employee")
    user: Mapped[Optional["AuthUser"]] = relationship(
        "AuthUser", back_populates="employee"
    )
    schedule: Mapped[List["EmployeeSchedule"]] = relationship(
        "EmployeeSchedule",
        uselist=True,
        back_populates="employee",
        cascade="all, delete-orphan",
    )
    invitation: Mapped[List["EmployeeInvitation"]] = relationship(
        "EmployeeInvitation", uselist=True, back_populates="employee"
    )
    appointment: Mapped[List["Appointment"]] = relationship(
        "Appointment", uselist=True, back_populates="employee"
    )


class EmployeeSchedule(Base):
    __tablename__ = "employee_schedule"
    __table_args__ = (
        ForeignKeyConstraint(
            ["employee_id"], ["employee.id"], ondelete="CASCADE", name="fk_sched_emp"
        ),
        # one working window per weekday
        Index("uq_sched_day", "employee_id", "day_of_week", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    employee_id = mapped_column(Integer, nullable=False)
    day_of_week = mapped_column(Enum(*WEEKDAYS, name="weekday"), nullable=False)
    start_time = mapped_column(Time)
    end_time = mapped_column(Time)
    is_available = mapped_column(Boolean, nullable=False, default=True)
    created_at = _created_at()
    updated_at = _updated_at()

    employee: Mapped["Employee"] = relationship("Employee", back_populates="schedule")


class EmployeeInvitation(Base):
    __tablename__ = "employee_invitation"
    __table_args__ = (
        ForeignKeyConstraint(
            ["employee_id"], ["employee.id"], ondelete="CASCADE", name="fk_inv_emp"
        ),
        Index("uq_inv_token", "token", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    employee_id = mapped_column(Integer, nullable=False)
    email = mapped_column(String(255), nullable=False)
    token = mapped_column(String(64), nullable=False)
    expires_at = mapped_column(DateTime, nullable=False)
    accepted_at = mapped_column(DateTime)
    created_at = _created_at()

    employee: Mapped["Employee"] = relationship("Employee", back_populates="invitation")


class AccountToken(Base):
    __tablename__ = "account_token"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["auth_user.id"], ondelete="CASCADE", name="fk_acct_token_user"
        ),
        Index("uq_acct_token", "token", unique=True),
        Index("idx_acct_token_user_purpose", "user_id", "purpose"),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    purpose = mapped_column(Enum(*ACCOUNT_TOKEN_PURPOSES, name="account_token_purpose"), nullable=False)
    token = mapped_column(String(64), nullable=False)
    expires_at = mapped_column(DateTime, nullable=False)
    used_at = mapped_column(DateTime)
    created_at = _created_at()

    user: Mapped["AuthUser"] = relationship("AuthUser", back_populates="account_token")


class OutboundEmail(Base):
    # rows are picked up and sent by an external mailer
    __tablename__ = "outbound_email"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["auth_user.id"], ondelete="CASCADE", name="fk_outmail_user"
        ),
        Index("idx_outmail_unsent", "sent_at"),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    recipient = mapped_column(String(255), nullable=False)
    template = mapped_column(String(40), nullable=False)
    payload = mapped_column(JSON)
    sent_at = mapped_column(DateTime)
    created_at = _created_at()


class Appointment(Base):
    __tablename__ = "appointment"
    __table_args__ = (
        ForeignKeyConstraint(["customer_id"], ["auth_user.id"], name="fk_ap_customer"),
        ForeignKeyConstraint(["employee_id"], ["employee.id"], name="fk_ap_employee"),
        ForeignKeyConstraint(["business_id"], ["business.id"], name="fk_ap_business"),
        ForeignKeyConstraint(["service_id"], ["service.id"], name="fk_ap_service"),
        Index("idx_ap_customer_start", "customer_id", "appointment_date"),
        Index("idx_ap_employee_start", "employee_id", "appointment_date"),
        Index("idx_ap_business_start", "business_id", "appointment_date"),
        # active_slot_key is NULL once cancelled, so only live bookings collide
        Index("uq_ap_employee_slot", "employee_id", "active_slot_key", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    customer_id = mapped_column(Integer, nullable=False)
    business_id = mapped_column(Integer, nullable=False)
    service_id = mapped_column(Integer, nullable=False)
    employee_id = mapped_column(Integer, nullable=False)
    appointment_date = mapped_column(DateTime, nullable=False)
    end_at = mapped_column(DateTime, nullable=False)
    active_slot_key = mapped_column(DateTime)
    status = mapped_column(
        Enum(*APPOINTMENT_STATUSES, name="appointment_status"),
        nullable=False,
        default="PENDING",
    )
    owner_approved = mapped_column(Boolean)
    employee_approved = mapped_column(Boolean)
    price_at_book = mapped_column(Numeric(10, 2))
    notes = mapped_column(Text)
    cancelled_at = mapped_column(DateTime)
    version = mapped_column(Integer, nullable=False)
    created_at = _created_at()
    updated_at = _updated_at()

    __mapper_args__ = {"version_id_col": version}

    customer: Mapped["AuthUser"] = relationship("AuthUser")
    business: Mapped["Business"] = relationship("Business", back_populates="appointment")
    service: Mapped["Service"] = relationship("Service", back_populates="appointment")
    employee: Mapped["Employee"] = relationship(
        "Employee", back_populates="appointment"
    )
    event: Mapped[List["AppointmentEvent"]] = relationship(
        "AppointmentEvent", uselist=True, back_populates="appointment"
    )
    review: Mapped[Optional["Review"]] = relationship(
        "Review", uselist=False, back_populates="appointment"
    )


class AppointmentEvent(Base):
    __tablename__ = "appointment_event"
    __table_args__ = (
        ForeignKeyConstraint(
            ["appointment_id"], ["appointment.id"], ondelete="CASCADE", name="fk_ev_ap"
        ),
        Index("idx_ev_pending", "dispatched_at", "id"),
    )

    id = mapped_column(Integer, primary_key=True)
    appointment_id = mapped_column(Integer, nullable=False)
    event_type = mapped_column(String(40), nullable=False)
    payload = mapped_column(JSON)
    created_at = _created_at()
    dispatched_at = mapped_column(DateTime)

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="event"
    )


class Review(Base):
    __tablename__ = "review"
    __table_args__ = (
        ForeignKeyConstraint(
            ["appointment_id"], ["appointment.id"], ondelete="CASCADE", name="fk_rv_ap"
        ),
        ForeignKeyConstraint(
            ["customer_id"], ["auth_user.id"], ondelete="CASCADE", name="fk_rv_user"
        ),
        ForeignKeyConstraint(
            ["business_id"], ["business.id"], ondelete="CASCADE", name="fk_rv_business"
        ),
        # one review per appointment
        Index("uq_rv_appointment", "appointment_id", unique=True),
        Index("idx_rv_business", "business_id", "created_at"),
    )

    id = mapped_column(Integer, primary_key=True)
    appointment_id = mapped_column(Integer, nullable=False)
    customer_id = mapped_column(Integer, nullable=False)
    business_id = mapped_column(Integer, nullable=False)
    employee_id = mapped_column(Integer)
    rating = mapped_column(Integer, nullable=False)
    comment = mapped_column(String(1000))
    created_at = _created_at()
    updated_at = _updated_at()

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="review"
    )
    customer: Mapped["AuthUser"] = relationship("AuthUser")
    business: Mapped["Business"] = relationship("Business", back_populates="review")


class Favorite(Base):
    __tablename__ = "favorite"
    __table_args__ = (
        ForeignKeyConstraint(
            ["customer_id"], ["auth_user.id"], ondelete="CASCADE", name="fk_fav_user"
        ),
        ForeignKeyConstraint(
            ["business_id"], ["business.id"], ondelete="CASCADE", name="fk_fav_business"
        ),
        Index("uq_fav_pair", "customer_id", "business_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    customer_id = mapped_column(Integer, nullable=False)
    business_id = mapped_column(Integer, nullable=False)
    created_at = _created_at()

    business: Mapped["Business"] = relationship("Business")


class Notification(Base):
    __tablename__ = "notification"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["auth_user.id"], ondelete="CASCADE", name="fk_notif_user"
        ),
        Index("idx_notif_user_read", "user_id", "read"),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    title = mapped_column(String(150), nullable=False)
    message = mapped_column(String(500), nullable=False)
    type = mapped_column(String(40), nullable=False)
    read = mapped_column(Boolean, nullable=False, default=False)
    created_at = _created_at()

    user: Mapped["AuthUser"] = relationship("AuthUser", back_populates="notification")
