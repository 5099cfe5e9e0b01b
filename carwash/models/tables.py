import enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Text, func, text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# Bookings in these statuses no longer occupy capacity
INACTIVE_STATUSES = (BookingStatus.CANCELLED.value, BookingStatus.NO_SHOW.value)


class Services(Base):
    __tablename__ = 'services'

    name = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price_cents = Column(Integer, nullable=False, server_default=text('0'))
    capacity = Column(Integer, nullable=False, server_default=text('1'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    bookings = relationship('Bookings', back_populates='service')


class BusinessHours(Base):
    __tablename__ = 'business_hours'

    # 0 = Monday .. 6 = Sunday (date.weekday())
    day_of_week = Column(Integer, nullable=False, unique=True)
    open_time = Column(Text, nullable=False)
    close_time = Column(Text, nullable=False)
    is_open = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    break_start = Column(Text)
    break_end = Column(Text)


class Holidays(Base):
    __tablename__ = 'holidays'

    date = Column(Date, nullable=False, unique=True)
    id = Column(Integer, primary_key=True)
    name = Column(Text)


class Bookings(Base):
    __tablename__ = 'bookings'

    service_id = Column(ForeignKey('services.id'), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price_cents = Column(Integer, nullable=False, server_default=text('0'))
    status = Column(Text, nullable=False, server_default=text("'PENDING'"))
    payment_status = Column(Text, nullable=False, server_default=text("'PENDING'"))
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    confirmation_code = Column(Text, nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
    id = Column(Integer, primary_key=True)
    vehicle_type = Column(Text)
    license_plate = Column(Text)
    notes = Column(Text)
    admin_notes = Column(Text)
    cancel_reason = Column(Text)
    cancelled_at = Column(DateTime)
    completed_at = Column(DateTime)

    service = relationship('Services', back_populates='bookings')
    status_history = relationship('BookingStatusHistory', back_populates='booking')


class BookingStatusHistory(Base):
    __tablename__ = 'booking_status_history'

    booking_id = Column(ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, index=True)
    to_status = Column(Text, nullable=False)
    changed_by = Column(Text, nullable=False, server_default=text("'system'"))
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    id = Column(Integer, primary_key=True)
    from_status = Column(Text)
    reason = Column(Text)

    booking = relationship('Bookings', back_populates='status_history')
